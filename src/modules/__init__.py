"""
Service modules.

Each subpackage owns one area of the progression core (settlement,
characters, matches, missions, clubs) and exposes its service classes;
``shared`` holds the base classes and the domain exception taxonomy.
"""
