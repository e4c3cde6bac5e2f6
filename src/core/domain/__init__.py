"""Modelos y entidades del dominio.

Por qué:
- Aquí viven las estructuras de datos puras (FlagSpec, Value, Outcome...).
- El dominio no conoce HTTP, CLI, ni SDKs: solo conceptos del motor.
"""
