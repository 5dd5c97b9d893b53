"""Runtime layer: stream combinators, future interop and observability."""
