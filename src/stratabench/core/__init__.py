"""
Measurement core: sampler, driver, sweep orchestrator, result schema,
recorder and comparison engine.

Import from the submodules directly; the package-level re-exports live in
``stratabench``.
"""
