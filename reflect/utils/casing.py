def to_camel(string: str) -> str:
  """Convert snake_case to camelCase so stored JSON matches client payloads."""
  parts = string.split("_")
  return parts[0] + "".join(part[:1].upper() + part[1:] for part in parts[1:])
