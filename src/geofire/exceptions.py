class GeoFireError(Exception):
    """Erro base para todos os erros do GeoFire."""


class InvalidCoordinateError(GeoFireError, ValueError):
    """Latitude/longitude fora do intervalo ou mal formada."""


class MalformedRecordError(InvalidCoordinateError):
    """Documento salvo sem os campos de localizacao esperados."""


class StoreUnavailableError(GeoFireError):
    """O document store falhou ao atender a requisicao."""


class ConnectionError(StoreUnavailableError):
    """Nao foi possivel conectar ao document store."""


class ServerError(StoreUnavailableError):
    """Erro interno no document store (500)."""


class AuthenticationError(GeoFireError):
    """API Key invalida (401)."""


class NotFoundError(GeoFireError):
    """Documento nao encontrado (404)."""


class ValidationError(GeoFireError):
    """Dados invalidos enviados (400)."""
