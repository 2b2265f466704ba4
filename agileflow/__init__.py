"""AgileFlow backend probes and readiness tooling."""
