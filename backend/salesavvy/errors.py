class AppError(Exception):
    """アプリケーション基底エラー"""

    status_code = 400


class ValidationError(AppError):
    status_code = 422


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409
