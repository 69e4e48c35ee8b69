"""API package.

This exposes router modules to simplify test imports like:
	from dirigia.api.routes.webhooks import router
"""

__all__ = [
	"routes",
]
