class InvalidRequestError(Exception):
    """A feed request the caller must fix; `error` is the XRPC error name."""

    def __init__(self, error: str, message: str):
        super().__init__(message)
        self.error = error
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.error, "message": self.message}
