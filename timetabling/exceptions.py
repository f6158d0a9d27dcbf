class TimetableError(Exception):
    """Base de los errores del generador de horarios."""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class InvalidInputError(TimetableError):
    """Registro de entrada mal formado (falta un identificador obligatorio)."""


class ConfigurationError(TimetableError):
    """Configuración inválida (archivo que no es un mapeo, estrategia desconocida)."""
