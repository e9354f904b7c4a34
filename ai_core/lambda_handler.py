"""AWS Lambda entry point.

Mangum translates API Gateway HTTP API (v2) events into ASGI, letting
the FastAPI app run unchanged on Lambda. Lifespan stays on because the
app builds its factory, cipher and rate accountant at startup; use the
DynamoDB rate store so limits hold across concurrent Lambda instances.
"""

from mangum import Mangum

from ai_core.main import app

handler = Mangum(app, lifespan="auto")
