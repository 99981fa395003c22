import requests


class CatalogError(requests.HTTPError):
    """Upstream catalog API failure."""


class CatalogAuthError(CatalogError):
    """Credentials rejected by the catalog API (401/403). Not retryable."""


class RateLimitExceeded(CatalogError):
    pass


class WebhookValidationError(Exception):
    def __init__(self, reason, http_code=400, **details):
        super().__init__(reason)
        self.reason = reason
        self.http_code = http_code
        self.details = details

    def as_dict(self):
        return {'reason': self.reason, **self.details}
