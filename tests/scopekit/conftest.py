"""Pytest fixtures for scopekit tests."""

import pytest

from scopekit.scope import ScopeResolver

from sample_workspace import StaticProvider, make_workspace


@pytest.fixture
def workspace():
    """Two modules, two libraries, a scratch file and editor state."""
    return make_workspace()


@pytest.fixture
def resolver(workspace):
    return ScopeResolver(workspace)


@pytest.fixture
def static_provider():
    return StaticProvider()


@pytest.fixture
def manifest_text():
    """YAML manifest describing the same workspace as the ``workspace`` fixture."""
    return """\
root: file:///ws
modules:
  - name: app
    dependencies: [core]
    libraries: [requests]
  - name: core
    libraries: [attrs]
files:
  - path: app/src/main.py
    module: app
  - path: app/src/util.py
    module: app
  - path: app/tests/test_main.py
    module: app
    root: test
  - path: core/src/base.py
    module: core
  - path: core/src/generated/models_pb2.py
    module: core
  - path: core/tests/test_base.py
    module: core
    root: test
  - path: scratches/scratch.py
    root: scratch
libraries:
  requests: [libs/requests/api.py]
  attrs: [libs/attrs/attr.py]
named_scopes:
  - holder: project
    scopes:
      - name: Generated
        pattern: "file:**/generated/**"
      - name: Tests
        pattern: "test:**"
        presentable_name: All tests
      - name: Unfinished
  - holder: shared
    scopes:
      - name: Generated
        pattern: "file:**/generated/**"
open_files: [app/src/main.py]
recent_files: [app/src/main.py, core/src/base.py]
changed_files: [core/src/base.py]
current_file: app/src/main.py
"""
