"""Top-level application package for the DirigIA appeal API.

This package contains the FastAPI backend that turns a photographed or
uploaded Brazilian traffic-fine notice into a formal appeal.  It holds
the database models, Pydantic schemas, the OCR and generation gateways,
entitlement rules, payment orchestration (checkout, webhooks and
realtime status) and the API routers.

To run the API locally you can execute:

```bash
uvicorn dirigia.api.main:app --reload --app-dir backend
```

The default configuration uses a local SQLite database stored in
``dirigia.db``.  Override configuration values using environment
variables or a ``.env`` file at the project root.
"""

__all__: list[str] = []
