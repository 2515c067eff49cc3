"""Tests for the RPN program evaluator."""

import pytest

from scopekit.scope.catalog import build_catalog
from scopekit.scope.evaluator import AtomResolver, check_program, evaluate_program, index_atoms
from scopekit.scope.exceptions import NegationError, ResolutionError, StructuralError
from scopekit.scope.models import AtomKind, FailureMode, ModuleFlavor, ProgramOp, ProgramToken, ScopeAtom, Shape
from scopekit.scope.strictness import ResolutionPolicy

from sample_workspace import BASE, GENERATED, MAIN, TEST_BASE, TEST_MAIN, UTIL, make_workspace, url, urls_of

AND = ProgramToken(op=ProgramOp.AND)
OR = ProgramToken(op=ProgramOp.OR)
NOT = ProgramToken(op=ProgramOp.NOT)
push = ProgramToken.push


def standard(atom_id, scope_id, **kwargs):
    return ScopeAtom(atom_id=atom_id, kind=AtomKind.STANDARD, standard_scope_id=scope_id, **kwargs)


def missing_module(atom_id, **kwargs):
    return ScopeAtom(
        atom_id=atom_id,
        kind=AtomKind.MODULE,
        module_name="ghost",
        module_flavor=ModuleFlavor.MODULE,
        **kwargs,
    )


@pytest.fixture
def evaluate(workspace):
    def _evaluate(tokens, atoms, **kwargs):
        return evaluate_program(tokens, atoms, build_catalog(workspace), workspace, **kwargs)

    return _evaluate


class TestCheckProgram:
    """Structural validation happens before anything resolves."""

    def test_empty_program(self):
        with pytest.raises(StructuralError, match="must not be empty"):
            check_program([], {})

    def test_push_without_atom_id(self):
        with pytest.raises(StructuralError, match="requires atom_id") as exc_info:
            check_program([ProgramToken(op=ProgramOp.PUSH_ATOM)], {})
        assert exc_info.value.token_index == 0

    def test_unknown_atom_id(self):
        atoms = index_atoms([standard("a", "AllPlaces")])
        with pytest.raises(StructuralError, match="unknown atom_id 'b'") as exc_info:
            check_program([push("a"), push("b"), AND], atoms)
        assert exc_info.value.token_index == 1

    def test_and_arity(self):
        atoms = index_atoms([standard("a", "AllPlaces")])
        with pytest.raises(StructuralError) as exc_info:
            check_program([push("a"), AND], atoms)
        assert str(exc_info.value) == "Token[1] AND requires 2 stack items, but stack size is 1."
        assert exc_info.value.token_index == 1

    def test_not_arity(self):
        with pytest.raises(StructuralError, match="Token\\[0\\] NOT requires 1 stack items"):
            check_program([NOT], {})

    def test_leftover_stack(self):
        atoms = index_atoms([standard("a", "AllPlaces"), standard("b", "ProjectFiles")])
        with pytest.raises(StructuralError, match="final stack size must be 1, but was 2"):
            check_program([push("a"), push("b")], atoms)

    def test_duplicate_atom_ids(self):
        with pytest.raises(StructuralError, match="Duplicate atom_id"):
            index_atoms([standard("a", "AllPlaces"), standard("a", "ProjectFiles")])

    def test_structural_errors_ignore_lenient_policy(self, evaluate):
        with pytest.raises(StructuralError):
            evaluate([push("a"), OR], [standard("a", "AllPlaces")], policy=ResolutionPolicy.LENIENT)


class TestEvaluation:
    def test_single_push_keeps_native_shape(self, evaluate):
        result = evaluate([push("a")], [standard("a", "ProjectTestFiles")])
        assert result.display_name == "Project Test Files"
        assert result.shape == Shape.GLOBAL
        assert result.diagnostics == ()

    def test_and(self, evaluate, workspace):
        result = evaluate(
            [push("a"), push("b"), AND],
            [
                standard("a", "ProjectProductionFiles"),
                ScopeAtom(atom_id="b", kind=AtomKind.MODULE, module_name="core", module_flavor=ModuleFlavor.MODULE),
            ],
        )
        assert urls_of(result, workspace) == [BASE, GENERATED]
        assert result.display_name == "Intersection of Project Production Files and core (module)"

    def test_or_then_not(self, evaluate, workspace):
        result = evaluate(
            [push("a"), push("b"), OR, NOT],
            [standard("a", "ProjectLibraries"), standard("b", "ScratchesAndConsoles")],
        )
        assert urls_of(result, workspace) == [MAIN, UTIL, TEST_MAIN, BASE, GENERATED, TEST_BASE]
        assert result.shape == Shape.GLOBAL

    def test_adhoc_and_named_atoms(self, evaluate, workspace):
        result = evaluate(
            [push("p"), push("n"), NOT, AND],
            [
                ScopeAtom(atom_id="p", kind=AtomKind.ADHOC_PATTERN, pattern_text="src:**"),
                ScopeAtom(
                    atom_id="n",
                    kind=AtomKind.NAMED_PATTERN,
                    named_scope_name="Generated",
                    named_scope_holder_id="project",
                ),
            ],
        )
        assert urls_of(result, workspace) == [MAIN, UTIL, BASE]

    def test_directory_and_file_set_atoms(self, evaluate, workspace):
        result = evaluate(
            [push("d"), push("f"), OR],
            [
                ScopeAtom(atom_id="d", kind=AtomKind.DIRECTORY, directory_url=url("core/tests")),
                ScopeAtom(atom_id="f", kind=AtomKind.FILE_SET, file_urls=[MAIN]),
            ],
        )
        assert urls_of(result, workspace) == [MAIN, TEST_BASE]
        assert result.shape == Shape.GLOBAL

    def test_catalog_ref_atom(self, evaluate, workspace):
        result = evaluate([push("r")], [ScopeAtom(atom_id="r", scope_ref_id="named:project:Tests")])
        assert result.display_name == "All tests"
        assert urls_of(result, workspace) == [TEST_MAIN, TEST_BASE]

    def test_provider_atom(self, workspace, static_provider):
        catalog = build_catalog(workspace, [static_provider])
        ref_id = next(item.scope_ref_id for item in catalog.items() if item.display_name == "Uncommitted")
        result = evaluate_program(
            [push("p")],
            [ScopeAtom(atom_id="p", kind=AtomKind.PROVIDER, scope_ref_id=ref_id)],
            catalog,
            workspace,
        )
        assert result.predicate is static_provider.uncommitted


class TestResolutionFailures:
    def test_strict_failure_raises(self, evaluate):
        with pytest.raises(ResolutionError, match="Module 'ghost' not found") as exc_info:
            evaluate([push("m")], [missing_module("m")])
        assert exc_info.value.atom_id == "m"

    def test_lenient_empty_scope(self, evaluate, workspace):
        result = evaluate(
            [push("a"), push("m"), OR],
            [standard("a", "ProjectTestFiles"), missing_module("m")],
            policy=ResolutionPolicy.LENIENT,
        )
        assert urls_of(result, workspace) == [TEST_MAIN, TEST_BASE]
        assert result.display_name == "Union of Project Test Files and Empty scope"
        assert result.diagnostics == ("Module 'ghost' not found. Fallback mode=EMPTY_SCOPE.",)

    def test_lenient_skip_drops_operand(self, evaluate):
        result = evaluate(
            [push("a"), push("m"), AND],
            [standard("a", "ProjectTestFiles"), missing_module("m", on_resolve_failure=FailureMode.SKIP)],
            policy=ResolutionPolicy.LENIENT,
        )
        assert result.display_name == "Project Test Files"
        assert result.diagnostics == ("Module 'ghost' not found. Fallback mode=SKIP.",)

    def test_request_default_skip(self, evaluate):
        result = evaluate(
            [push("m"), push("a"), OR],
            [standard("a", "ProjectTestFiles"), missing_module("m")],
            policy=ResolutionPolicy.LENIENT,
            default_failure_mode=FailureMode.SKIP,
        )
        assert result.display_name == "Project Test Files"

    def test_everything_skipped_fails(self, evaluate):
        with pytest.raises(ResolutionError, match="empty expression"):
            evaluate(
                [push("m")],
                [missing_module("m")],
                policy=ResolutionPolicy.LENIENT,
                default_failure_mode=FailureMode.SKIP,
            )

    def test_not_of_skipped_stays_skipped(self, evaluate):
        result = evaluate(
            [push("m"), NOT, push("a"), OR],
            [standard("a", "ProjectFiles"), missing_module("m", on_resolve_failure=FailureMode.SKIP)],
            policy=ResolutionPolicy.LENIENT,
        )
        assert result.display_name == "Project Files"
        assert "Token[1] NOT operand skipped; result remains unresolved." in result.diagnostics

    def test_atom_fail_mode_aborts_lenient(self, evaluate):
        with pytest.raises(ResolutionError):
            evaluate(
                [push("m")],
                [missing_module("m", on_resolve_failure=FailureMode.FAIL)],
                policy=ResolutionPolicy.LENIENT,
            )

    def test_unavailable_standard_scope(self):
        unfocused = make_workspace(current_file=None)
        with pytest.raises(ResolutionError, match="Standard scope 'CurrentFile' cannot be resolved"):
            evaluate_program(
                [push("c")],
                [standard("c", "CurrentFile")],
                build_catalog(unfocused),
                unfocused,
                allow_interactive=True,
            )

    def test_interactive_scope_needs_permission(self, evaluate):
        with pytest.raises(ResolutionError, match="requires user input"):
            evaluate([push("c")], [standard("c", "CurrentFile")])

    def test_missing_directory_converted(self, evaluate):
        with pytest.raises(ResolutionError, match="Directory URL") as exc_info:
            evaluate([push("d")], [ScopeAtom(atom_id="d", kind=AtomKind.DIRECTORY, directory_url=url("docs"))])
        assert exc_info.value.__cause__ is not None

    def test_named_scope_without_pattern(self, evaluate):
        atom = ScopeAtom(
            atom_id="n",
            kind=AtomKind.NAMED_PATTERN,
            named_scope_name="Unfinished",
            named_scope_holder_id="project",
        )
        with pytest.raises(ResolutionError, match="has no pattern"):
            evaluate([push("n")], [atom])


class TestNegation:
    """NOT is only defined for global operands."""

    def test_strict_not_on_local(self, evaluate):
        with pytest.raises(NegationError) as exc_info:
            evaluate([push("c"), NOT], [standard("c", "CurrentFile")], allow_interactive=True)
        assert str(exc_info.value) == "Token[1] NOT requires a GLOBAL operand, but operand shape is LOCAL."
        assert exc_info.value.token_index == 1

    def test_lenient_not_on_mixed(self, evaluate):
        result = evaluate(
            [push("a"), push("c"), OR, NOT],
            [standard("a", "ProjectTestFiles"), standard("c", "CurrentFile")],
            policy=ResolutionPolicy.LENIENT,
            allow_interactive=True,
        )
        assert result.display_name == "Empty scope"
        assert result.shape == Shape.GLOBAL
        assert result.diagnostics == ("Token[3] NOT operand is MIXED, not GLOBAL; replaced with empty scope.",)

    def test_lenient_not_with_fail_default_aborts(self, evaluate):
        with pytest.raises(NegationError):
            evaluate(
                [push("c"), NOT],
                [standard("c", "CurrentFile")],
                policy=ResolutionPolicy.LENIENT,
                allow_interactive=True,
                default_failure_mode=FailureMode.FAIL,
            )


class TestAtomResolver:
    def test_ambiguous_named_scope(self, workspace):
        resolver = AtomResolver(build_catalog(workspace), workspace)
        with pytest.raises(ResolutionError) as exc_info:
            resolver.resolve(ScopeAtom(atom_id="x", kind=AtomKind.NAMED_PATTERN, named_scope_name="Generated"))
        assert exc_info.value.candidates == ("project", "shared")
        assert exc_info.value.atom_id == "x"

    def test_typed_atom_resolved_by_reference(self, workspace):
        resolver = AtomResolver(build_catalog(workspace), workspace)
        predicate = resolver.resolve(
            ScopeAtom(atom_id="s", kind=AtomKind.STANDARD, scope_ref_id="standard:ProjectTestFiles")
        )
        assert urls_of(predicate, workspace) == [TEST_MAIN, TEST_BASE]
        module = resolver.resolve(ScopeAtom(atom_id="m", kind=AtomKind.MODULE, scope_ref_id="module:core:module"))
        assert module.display_name == "core (module)"

    def test_unknown_reference_uses_payload(self, workspace):
        resolver = AtomResolver(build_catalog(workspace), workspace)
        with pytest.raises(ResolutionError, match="Module 'ghost' not found"):
            resolver.resolve(missing_module("m", scope_ref_id="module:ghost:module"))

    def test_unknown_reference_without_payload(self, workspace):
        resolver = AtomResolver(build_catalog(workspace), workspace)
        with pytest.raises(ResolutionError, match="Unknown scope_ref_id 'standard:Nope'") as exc_info:
            resolver.resolve(ScopeAtom(atom_id="s", kind=AtomKind.STANDARD, scope_ref_id="standard:Nope"))
        assert exc_info.value.atom_id == "s"
