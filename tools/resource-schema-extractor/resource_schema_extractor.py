#!/usr/bin/env python3
"""
Laravel Resource Response Schema Extractor

Scans PHP sources for JsonResource classes and documents the JSON they produce
as an OpenAPI document, by statically analyzing the array each resource returns
from `toArray`. Nothing is executed.

PROCESSING PIPELINE:

1. **Indexing** (source_index.py):
   - Every .php file under --path is parsed with tree-sitter
   - Classes are indexed by fully-qualified name
   - Resources are the classes extending JsonResource (or --base-class), directly or not

2. **Inference** (response_extractor.py, array_inferer.py, expression_classifier.py):
   - The first return statement of `toArray` is located
   - Each entry of the returned array is classified into a typed, possibly optional field
   - Nested resources are inferred recursively and referenced by name

3. **Registration** (schema_builder.py, schema_registry.py):
   - Each resource becomes one named schema under components/schemas
   - Schema overrides from --overrides are registered first and always win

EXAMPLE:

PHP Source:
  class UserResource extends JsonResource
  {
      public function toArray($request)
      {
          return [
              'id' => $this->id,
              'type' => 'user',
              'email' => $this->when($request->user()->isAdmin(), $this->email),
              'posts' => new PostCollection($this->whenLoaded('posts')),
          ];
      }
  }

Output:
  "UserResource": {
    "type": "object",
    "properties": {
      "id": {"type": "string"},
      "type": {"type": "string", "example": "user"},
      "email": {"type": "string"},
      "posts": {"$ref": "#/components/schemas/PostCollection"}
    },
    "required": ["id", "type"]
  }

Resources whose schema cannot be inferred are still listed under
components/responses, only without a content description.
"""
import argparse
import json
import logging
import os
import sys
from pathlib import Path

import yaml

from name_resolver import class_basename
from response_extractor import JsonResourceResponseExtractor, ResourceSchemaAnalyzer
from return_locator import DEFAULT_METHOD_NAME
from schema_bag import SchemaBag
from schema_registry import SchemaRegistry
from source_index import DEFAULT_BASE_CLASSES, SourceIndex

logger = logging.getLogger("resource_schema_extractor")

OPENAPI_VERSION = "3.1.0"


def validate_paths(options):
    if not os.path.exists(options.path):
        logger.error(f'Path does not exist: "{options.path}".')
        sys.exit(1)

    if options.overrides and not os.path.exists(options.overrides):
        logger.error(f'Overrides file not found: "{options.overrides}".')
        sys.exit(1)


def load_overrides(path):
    """
    Load a JSON or YAML overrides file. Structure:

        {
          "schemas": { "UserResource": { "type": "object", "properties": {...} } }
        }
    """
    with open(path) as f:
        if Path(path).suffix in (".yaml", ".yml"):
            overrides = yaml.safe_load(f)
        else:
            overrides = json.load(f)

    if overrides is None:
        return {}

    if not isinstance(overrides, dict):
        raise ValueError(f"Overrides file {path} must contain a mapping")

    return overrides


def apply_schema_overrides(registry, overrides):
    schemas = overrides.get("schemas") or {}
    for name, schema in schemas.items():
        registry.add_schema(name, schema)

    if schemas:
        logger.info(f"📝 Loaded {len(schemas)} schema overrides")

    return len(schemas)


def extract_responses(source_index, registry, base_classes=DEFAULT_BASE_CLASSES, method_name=DEFAULT_METHOD_NAME):
    """
    Run the extraction for every resource in `source_index`.

    Returns {response_name: response_object}. Resources without an inferred
    schema get a response with only a description.
    """
    analyzer = ResourceSchemaAnalyzer(source_index, registry, method_name=method_name)
    responses = {}

    resources = source_index.resource_classes(base_classes)
    logger.info(f"🔍 Found {len(resources)} resource classes")

    for class_name in resources:
        name = class_basename(class_name)
        if name in responses:
            logger.warning(f"Resource name {name} is used by more than one class, {class_name} wins")

        response = JsonResourceResponseExtractor(analyzer, class_name).extract()
        if response is None:
            logger.info(f"No response schema inferred for {class_name}")
            response = {"description": f"`{name}`"}

        responses[name] = response

    inferred = sum(1 for r in responses.values() if "content" in r)
    logger.info(f"✅ Inferred {inferred} of {len(responses)} response schemas")

    return responses


def build_document(registry, responses, title="API", version="1.0.0"):
    document = SchemaBag()
    document["openapi"] = OPENAPI_VERSION
    document["info"]["title"] = title
    document["info"]["version"] = version
    document["paths"] = {}

    for name, schema in registry.to_dict().items():
        document["components"]["schemas"][name] = schema

    for name, response in responses.items():
        document["components"]["responses"][name] = response

    return document


def dump_document(document, output_format="json"):
    if output_format == "yaml":
        return yaml.safe_dump(document.to_dict(), sort_keys=False, default_flow_style=False)
    return json.dumps(document, indent=4, ensure_ascii=False)


def generate_options():
    arg_parser = argparse.ArgumentParser(
        description="Infer OpenAPI response schemas from Laravel JsonResource classes"
    )
    arg_parser.add_argument("--path", type=str, required=True, help="PHP source directory or file")
    arg_parser.add_argument("--recursive", action="store_true", help="Scan path recursively")

    arg_parser.add_argument("--output", type=str, help="Output file path (stdout if omitted)")
    arg_parser.add_argument("--format", choices=("json", "yaml"), default="json", help="Output format")

    arg_parser.add_argument(
        "--overrides",
        type=str,
        help="JSON or YAML file with schema overrides. Format: {'schemas': {...}}",
    )
    arg_parser.add_argument(
        "--method", type=str, default=DEFAULT_METHOD_NAME, help="Resource method returning the response array"
    )
    arg_parser.add_argument(
        "--base-class",
        action="append",
        dest="base_classes",
        help=f"Base class basename identifying resources (repeatable, default: {', '.join(DEFAULT_BASE_CLASSES)})",
    )
    arg_parser.add_argument("--title", type=str, default="API", help="Document title")
    arg_parser.add_argument("--api-version", type=str, default="1.0.0", help="Document version")
    arg_parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")

    return arg_parser


def main(argv=None):
    options = generate_options().parse_args(argv)

    if options.verbose:
        logging.basicConfig(level="DEBUG")
    else:
        logging.basicConfig(level="WARNING")

    validate_paths(options)

    registry = SchemaRegistry()

    if options.overrides:
        try:
            apply_schema_overrides(registry, load_overrides(options.overrides))
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.error(f"Failed to load overrides file: {e}")
            sys.exit(1)

    source_index = SourceIndex()
    source_index.scan(options.path, recursive=options.recursive)

    base_classes = tuple(options.base_classes) if options.base_classes else DEFAULT_BASE_CLASSES
    responses = extract_responses(source_index, registry, base_classes, options.method)

    document = build_document(registry, responses, options.title, options.api_version)
    output = dump_document(document, options.format)

    if options.output:
        try:
            with open(options.output, "w", encoding="utf-8") as f:
                f.write(output)
                if not output.endswith("\n"):
                    f.write("\n")
        except OSError as e:
            logger.error(f"Failed to write output file: {e}")
            sys.exit(1)
        logger.info(f"Wrote {options.output}")
    else:
        print(output)


if __name__ == "__main__":
    main()
