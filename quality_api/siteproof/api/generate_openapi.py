import json
import os

from siteproof.api.main import app

# Get the OpenAPI schema (note: all REST routes are under /api/v1)
openapi_schema = app.openapi()

# Document the response envelope shared by every engine operation
openapi_schema["x-envelope"] = {
    "fields": ["success", "data", "error", "error_type", "details", "correlation_id"],
    "error_types": {
        "validation_error": 400,
        "not_found": 404,
        "conflict": 409,
        "persistence_failure": 503,
    },
}

# Write to file
output_dir = "interfaces"
os.makedirs(output_dir, exist_ok=True)
output_path = os.path.join(output_dir, "openapi.json")

with open(output_path, "w") as f:
    json.dump(openapi_schema, f, indent=2)
