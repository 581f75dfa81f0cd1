"""
errors.py — Error taxonomy for SecureFileSync.

Every error carries a stable ``code`` that maps to a user-safe, localized
message. Internal detail (store internals, tracebacks) goes to the logs only.
"""

from typing import Optional

import config


MESSAGES = {
    "en": {
        "validation_error": "The request is invalid.",
        "file_missing": "No file was provided.",
        "file_too_large": "The file exceeds the maximum upload size.",
        "invalid_duration": "Unknown expiration period.",
        "invalid_size": "The original file size is invalid.",
        "file_not_found": "File not found.",
        "share_not_found": "Share link not found or expired.",
        "share_expired": "Share link has expired.",
        "password_required": "Password required.",
        "password_invalid": "Invalid password.",
        "decrypt_failed": "The file could not be decrypted.",
        "store_error": "The operation could not be completed. Please try again.",
        "issuance_failed": "Could not create a share link. Please try again.",
        "internal_error": "Internal server error.",
    },
    "pt": {
        "validation_error": "A requisição é inválida.",
        "file_missing": "Nenhum arquivo fornecido.",
        "file_too_large": "O arquivo excede o tamanho máximo de envio.",
        "invalid_duration": "Período de expiração desconhecido.",
        "invalid_size": "O tamanho original do arquivo é inválido.",
        "file_not_found": "Arquivo não encontrado.",
        "share_not_found": "Link de compartilhamento não encontrado ou expirado.",
        "share_expired": "Link de compartilhamento expirado.",
        "password_required": "Senha necessária.",
        "password_invalid": "Senha inválida.",
        "decrypt_failed": "Não foi possível descriptografar o arquivo.",
        "store_error": "Não foi possível concluir a operação. Tente novamente.",
        "issuance_failed": "Falha ao compartilhar o arquivo. Tente novamente.",
        "internal_error": "Erro interno do servidor.",
    },
}


def pick_locale(accept_language: Optional[str]) -> str:
    """First supported primary tag from an Accept-Language header."""
    if accept_language:
        for part in accept_language.split(","):
            tag = part.split(";")[0].strip().lower()
            primary = tag.split("-")[0]
            if primary in MESSAGES:
                return primary
    return config.DEFAULT_LOCALE if config.DEFAULT_LOCALE in MESSAGES else "en"


def localize(code: str, locale: str = "en") -> str:
    catalog = MESSAGES.get(locale, MESSAGES["en"])
    return catalog.get(code) or MESSAGES["en"].get(code) or MESSAGES["en"]["internal_error"]


class ShareError(Exception):
    """Base error. ``code`` selects the client message, ``status_code`` the HTTP status."""

    status_code = 500
    default_code = "internal_error"

    def __init__(self, code: Optional[str] = None, detail: Optional[str] = None):
        self.code = code or self.default_code
        self.detail = detail
        super().__init__(detail or self.code)


class ValidationError(ShareError):
    status_code = 400
    default_code = "validation_error"


class NotFoundError(ShareError):
    status_code = 404
    default_code = "file_not_found"


class ExpiredError(ShareError):
    status_code = 403
    default_code = "share_expired"


class PasswordRequiredError(ShareError):
    status_code = 401
    default_code = "password_required"


class PasswordInvalidError(ShareError):
    status_code = 401
    default_code = "password_invalid"


class AuthenticationError(ShareError):
    """Ciphertext failed authentication: tampered data or wrong key."""

    status_code = 400
    default_code = "decrypt_failed"


class StoreError(ShareError):
    status_code = 500
    default_code = "store_error"


class DuplicateTokenError(StoreError):
    """A share token value already exists. TokenIssuer retries on this."""


class IssuanceError(ShareError):
    status_code = 500
    default_code = "issuance_failed"
