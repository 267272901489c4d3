"""Interfaces/abstractions of the core.

Por qué:
- Define contratos (Protocol) que implementan adaptadores concretos.
- Los servicios dependen de ellos, así los tests sustituyen subprocesos y prompts por fakes.
"""
