"""Pure domain logic: recovery analysis, composition, extraction, app skills."""
