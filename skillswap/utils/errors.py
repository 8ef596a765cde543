from fastapi import HTTPException


class SkillSwapError(Exception):
    """Base error for every failure raised by the services"""
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_http(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.detail)


# ****************************************************
#  Identity
# ****************************************************

class IdentityError(SkillSwapError):
    status_code = 401


# ****************************************************
#  Reads
# ****************************************************

class ReadError(SkillSwapError):
    status_code = 500

class NotFoundError(ReadError):
    status_code = 404


# ****************************************************
#  Writes
# ****************************************************

class WriteError(SkillSwapError):
    status_code = 500

class InvalidRequestError(WriteError):
    status_code = 400

class PermissionDeniedError(WriteError):
    status_code = 403


# ****************************************************
#  Uploads
# ****************************************************

class UploadError(SkillSwapError):
    status_code = 500

class UploadValidationError(UploadError):
    status_code = 400

class UploadTransferError(UploadError):
    status_code = 502

class UploadCancelledError(UploadError):
    status_code = 409
