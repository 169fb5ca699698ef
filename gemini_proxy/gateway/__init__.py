"""Gateway layer: translators, retrying transport, completion service and dispatcher."""
