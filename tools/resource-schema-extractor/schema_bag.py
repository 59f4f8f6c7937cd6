class SchemaBag(dict):
    """
    A recursive, auto-expanding dictionary used to assemble the OpenAPI document.

    Accessing a missing key inserts and returns another SchemaBag, so nested
    sections can be filled without creating the intermediate levels first:

    >>> document = SchemaBag()
    >>> document["components"]["responses"]["UserResource"] = {"description": "`UserResource`"}
    >>> document
    {'components': {'responses': {'UserResource': {'description': '`UserResource`'}}}}
    """

    def __missing__(self, key):
        self[key] = SchemaBag()
        return self[key]

    def to_dict(self):
        """Plain nested dicts, suitable for yaml.safe_dump."""
        return {
            key: value.to_dict() if isinstance(value, SchemaBag) else value
            for key, value in self.items()
        }
