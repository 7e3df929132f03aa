class ComfortError(Exception):
    status = 500
    error = "Internal error"

    def __init__(self, error: str | None = None):
        if error is not None:
            self.error = error
        super().__init__(self.error)

    def body(self) -> dict:
        return {"error": self.error}


class ClientError(ComfortError):
    status = 400


class InvalidJSONBody(ClientError):
    error = "Invalid JSON body"


class MissingProblem(ClientError):
    error = "Missing problem"


class ProblemTooLong(ClientError):
    error = "Problem too long"


class MethodNotAllowed(ClientError):
    status = 405
    error = "Method Not Allowed"


class RateLimitError(ComfortError):
    status = 429
    error = "Rate limit exceeded"

    def __init__(self, retry_after_seconds: int):
        super().__init__()
        self.retry_after_seconds = retry_after_seconds

    def body(self) -> dict:
        return {"error": self.error, "retryAfterSeconds": self.retry_after_seconds}


class ConfigurationError(ComfortError):
    status = 500
    error = "Configuration error"


class MissingCredential(ConfigurationError):
    def __init__(self, env_name: str):
        super().__init__(f"Missing {env_name}")
        self.env_name = env_name


class UpstreamError(ComfortError):
    status = 502
    error = "Upstream request failed"

    def __init__(self, error: str | None = None, request_id: str = ""):
        super().__init__(error)
        self.request_id = request_id

    def body(self) -> dict:
        return {"error": self.error, "requestId": self.request_id}


class UpstreamHttpError(UpstreamError):
    error = "Upstream error"

    def __init__(self, status: int, body: str, request_id: str = ""):
        super().__init__(request_id=request_id)
        self.upstream_status = status
        self.upstream_body = body

    def body(self) -> dict:
        return {
            "error": self.error,
            "status": self.upstream_status,
            "body": self.upstream_body,
            "requestId": self.request_id,
        }


class UpstreamTimeout(UpstreamError):
    error = "Upstream timeout"
    aborted = True


class UpstreamTransportError(UpstreamError):
    error = "Upstream request failed"


class InvalidModelJSON(UpstreamError):
    error = "Upstream request failed"

    def __init__(self, raw_text: str, error: str, kind: str, request_id: str = ""):
        super().__init__(request_id=request_id)
        self.raw_text = raw_text
        self.detail = error
        self.kind = kind
        self.args = (f"Model output failure ({kind}): {error}",)


class EmptyModelOutput(InvalidModelJSON):
    error = "Model returned non-JSON content"

    def __init__(self, request_id: str = ""):
        super().__init__(
            raw_text="",
            error="No text content found in model response",
            kind="empty_output",
            request_id=request_id,
        )


class NonJsonModelOutput(InvalidModelJSON):
    error = "Model returned non-JSON content"

    def __init__(self, raw_text: str, error: str, request_id: str = ""):
        super().__init__(raw_text=raw_text, error=error, kind="json_decode", request_id=request_id)


class InvalidSchema(InvalidModelJSON):
    error = "Invalid model output schema"

    def __init__(self, raw_text: str, error: str, request_id: str = ""):
        super().__init__(raw_text=raw_text, error=error, kind="schema_validation", request_id=request_id)

    def body(self) -> dict:
        return {"error": self.error, "raw": self.raw_text, "requestId": self.request_id}


class InvalidEnvelope(InvalidModelJSON):
    error = "Upstream request failed"

    def __init__(self, raw_text: str, error: str, request_id: str = ""):
        super().__init__(raw_text=raw_text, error=error, kind="envelope", request_id=request_id)
