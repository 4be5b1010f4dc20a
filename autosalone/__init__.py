"""
Autosalone - Gestione Stock e Prezzi
Core di prezzi, compatibilità catalogo e ciclo di vita delle prenotazioni.
"""

__version__ = "1.0.0"
