"""Stack-specific target specialisations."""
