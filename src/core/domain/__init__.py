"""Domain models and enums.

Por qué:
- Aquí viven las estructuras de datos puras y estrictas (Pydantic v2) y los enums.
- El dominio no conoce HTTP, subprocesos ni la CLI.
"""
