"""
Core package: specification grammar, validation and dispatch generation.

Architecture:
- lexer and parser turn text into syntax trees
- validation produces MachineDef and MessagesDef
- hooks binds declared names to Python classes and callables
- generator compiles a MachineDef into a DispatchTable
- fallible and messages extend the generated table
"""
