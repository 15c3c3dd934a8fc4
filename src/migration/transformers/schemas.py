"""
JSON schemas for legacy records, one per entity kind.

Legacy attributes are camelCase as stored in DynamoDB. Timestamps may be
epoch milliseconds or strings; their format is checked by the timestamp codec.
"""

TIMESTAMP = {"type": ["number", "string"]}
NULLABLE_STRING = {"type": ["string", "null"]}
NULLABLE_BOOLEAN = {"type": ["boolean", "null"]}
NULLABLE_OBJECT = {"type": ["object", "null"]}
NULLABLE_INTEGER = {"type": ["integer", "null"]}
TAGS = {"type": ["array", "null"], "items": {"type": "string"}}

FILE_CONFIG = {
    "type": "object",
    "required": ["bucket", "regex"],
    "properties": {
        "bucket": {"type": "string"},
        "regex": {"type": "string"},
        "sampleFileName": NULLABLE_STRING,
        "type": {"type": "string"},
        "url_path": {"type": "string"},
        "checksumFor": {"type": "string"},
    },
}

COLLECTION_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Legacy collection",
    "type": "object",
    "required": [
        "name",
        "version",
        "process",
        "granuleId",
        "granuleIdExtraction",
        "files",
        "createdAt",
        "updatedAt",
    ],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "version": {"type": "string", "minLength": 1},
        "process": {"type": "string"},
        "url_path": NULLABLE_STRING,
        "duplicateHandling": {
            "type": ["string", "null"],
            "enum": ["error", "skip", "replace", "version", None],
        },
        "granuleId": {"type": "string"},
        "granuleIdExtraction": {"type": "string"},
        "sampleFileName": NULLABLE_STRING,
        "files": {"type": "array", "items": FILE_CONFIG},
        "reportToEms": NULLABLE_BOOLEAN,
        "ignoreFilesConfigForDiscovery": NULLABLE_BOOLEAN,
        "meta": NULLABLE_OBJECT,
        "tags": TAGS,
        "createdAt": TIMESTAMP,
        "updatedAt": TIMESTAMP,
    },
}

PROVIDER_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Legacy provider",
    "type": "object",
    "required": ["id", "protocol", "host", "createdAt", "updatedAt"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "protocol": {"type": "string", "enum": ["http", "https", "ftp", "sftp", "s3"]},
        "host": {"type": "string"},
        "port": NULLABLE_INTEGER,
        "username": NULLABLE_STRING,
        "password": NULLABLE_STRING,
        "globalConnectionLimit": NULLABLE_INTEGER,
        "maxDownloadTime": NULLABLE_INTEGER,
        "privateKey": NULLABLE_STRING,
        "cmKeyId": NULLABLE_STRING,
        "certificateUri": NULLABLE_STRING,
        "allowedRedirects": {"type": ["array", "null"], "items": {"type": "string"}},
        "createdAt": TIMESTAMP,
        "updatedAt": TIMESTAMP,
    },
}

RULE_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Legacy rule",
    "type": "object",
    "required": ["name", "workflow", "rule", "state", "createdAt", "updatedAt"],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "workflow": {"type": "string"},
        "provider": NULLABLE_STRING,
        "collection": {
            "type": ["object", "null"],
            "required": ["name", "version"],
            "properties": {
                "name": {"type": "string"},
                "version": {"type": "string"},
            },
        },
        "rule": {
            "type": "object",
            "required": ["type"],
            "properties": {
                "type": {"type": "string", "enum": ["onetime", "scheduled", "sns", "kinesis", "sqs"]},
                "value": NULLABLE_STRING,
                "arn": NULLABLE_STRING,
                "logEventArn": NULLABLE_STRING,
            },
        },
        "state": {"type": "string", "enum": ["ENABLED", "DISABLED"]},
        "meta": NULLABLE_OBJECT,
        "payload": {},
        "tags": TAGS,
        "queueUrl": NULLABLE_STRING,
        "executionNamePrefix": NULLABLE_STRING,
        "createdAt": TIMESTAMP,
        "updatedAt": TIMESTAMP,
    },
}

ASYNC_OPERATION_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Legacy async operation",
    "type": "object",
    "required": ["id", "description", "operationType", "status", "createdAt", "updatedAt"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "description": {"type": "string"},
        "operationType": {"type": "string"},
        "status": {
            "type": "string",
            "enum": ["RUNNING", "SUCCEEDED", "RUNNER_FAILED", "TASK_FAILED"],
        },
        "output": {"type": ["string", "object", "array", "null"]},
        "taskArn": NULLABLE_STRING,
        "createdAt": TIMESTAMP,
        "updatedAt": TIMESTAMP,
    },
}
