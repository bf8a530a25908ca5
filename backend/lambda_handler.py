from mangum import Mangum
from main import app

# AWS Lambda entrypoint using API Gateway HTTP API. Generation turns can run
# for minutes while images are produced; raise the function timeout to match
# OPENAI_TIMEOUT_SECONDS. STORAGE_DIR must point at a writable path (/tmp).
handler = Mangum(app)
