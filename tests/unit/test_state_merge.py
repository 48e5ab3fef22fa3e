# tests/unit/test_state_merge.py
"""
State merge unit tests.

What is tested
--------------
- Field-level union for use cases keyed by id (absent fields keep prior values).
- Roles are replaced wholesale, never unioned.
- Org merges field by field; explicit empty strings overwrite, None does not.
- Existing use cases keep their position, new ones append.
- Idempotence: merging the same update twice == merging once.
- Purity: the input state is never mutated.
- Derived intake step.
"""

from usecase_registry.registry_state import (
    IntakeStep,
    OrgInfo,
    SessionState,
    StateUpdates,
    UseCase,
    compute_intake_step,
    merge_state,
)


def _uc_updates(*use_cases: dict) -> StateUpdates:
    return StateUpdates.model_validate({"useCases": list(use_cases)})


def test_field_level_union_for_same_id():
    s = merge_state(SessionState(), _uc_updates({"id": "uc-1", "name": "A"}))
    s = merge_state(s, _uc_updates({"id": "uc-1", "risk": "high"}))

    assert len(s.use_cases) == 1
    uc = s.use_cases[0]
    assert uc.id == "uc-1"
    assert uc.name == "A"
    assert uc.risk == "high"


def test_incoming_fields_win_on_conflict():
    s = merge_state(SessionState(), _uc_updates({"id": "uc-1", "name": "A", "owner": "IT"}))
    s = merge_state(s, _uc_updates({"id": "uc-1", "name": "B"}))
    assert s.use_cases[0].name == "B"
    assert s.use_cases[0].owner == "IT"


def test_roles_are_replaced_not_unioned():
    s = SessionState(roles=["Provider"])
    s2 = merge_state(s, StateUpdates(roles=["Deployer"]))
    assert s2.roles == ["Deployer"]


def test_empty_roles_update_clears_roles():
    s2 = merge_state(SessionState(roles=["Provider"]), StateUpdates(roles=[]))
    assert s2.roles == []


def test_org_merges_field_by_field():
    s = SessionState(org=OrgInfo(name="Acme", country="Latvia"))
    s2 = merge_state(s, StateUpdates(org=OrgInfo(industry="Retail")))
    assert s2.org.name == "Acme"
    assert s2.org.country == "Latvia"
    assert s2.org.industry == "Retail"


def test_org_created_when_absent():
    s2 = merge_state(SessionState(), StateUpdates(org=OrgInfo(size="SME")))
    assert s2.org is not None
    assert s2.org.size == "SME"
    assert s2.org.name is None


def test_org_explicit_empty_string_overwrites_but_none_does_not():
    s = SessionState(org=OrgInfo(name="Acme", country="Latvia"))
    s2 = merge_state(s, StateUpdates(org=OrgInfo(name="", country=None)))
    assert s2.org.name == ""
    assert s2.org.country == "Latvia"


def test_insertion_order_existing_keep_position_new_append():
    s = merge_state(SessionState(), _uc_updates({"id": "a"}, {"id": "b"}))
    s = merge_state(s, _uc_updates({"id": "c"}, {"id": "a", "name": "first"}))
    assert [u.id for u in s.use_cases] == ["a", "b", "c"]
    assert s.use_cases[0].name == "first"


def test_duplicate_ids_within_one_batch_collapse():
    s = merge_state(
        SessionState(),
        _uc_updates({"id": "x", "name": "one"}, {"id": "x", "owner": "Ops"}),
    )
    assert len(s.use_cases) == 1
    assert s.use_cases[0].name == "one"
    assert s.use_cases[0].owner == "Ops"


def test_merge_is_idempotent():
    base = SessionState(roles=["deployer"], use_cases=[UseCase(id="uc-1", name="Chatbot")])
    upd = StateUpdates.model_validate(
        {
            "org": {"name": "Acme"},
            "roles": ["provider"],
            "useCases": [{"id": "uc-1", "risk": "limited"}, {"id": "uc-2", "name": "Scoring"}],
        }
    )
    once = merge_state(base, upd)
    twice = merge_state(once, upd)
    assert once.model_dump() == twice.model_dump()


def test_merge_does_not_mutate_input():
    base = SessionState(roles=["deployer"], use_cases=[UseCase(id="uc-1", name="Chatbot")])
    before = base.model_dump()
    merge_state(base, _uc_updates({"id": "uc-1", "name": "Changed"}, {"id": "uc-9"}))
    assert base.model_dump() == before


def test_none_update_returns_equal_copy():
    base = SessionState(roles=["deployer"])
    out = merge_state(base, None)
    assert out == base
    assert out is not base


def test_fields_not_in_update_are_untouched():
    base = SessionState(org=OrgInfo(name="Acme"), roles=["deployer"], use_cases=[UseCase(id="u")])
    out = base.model_merge_updates(StateUpdates(roles=["provider"]))
    assert out.org.name == "Acme"
    assert [u.id for u in out.use_cases] == ["u"]


def test_intake_step_is_derived_from_cardinality():
    s = SessionState()
    assert compute_intake_step(s) == IntakeStep.ROLE
    s = merge_state(s, StateUpdates(roles=["deployer"]))
    assert compute_intake_step(s) == IntakeStep.USE_CASES
    s = merge_state(s, _uc_updates({"id": "uc-1"}))
    assert compute_intake_step(s) == IntakeStep.REGISTRY


def test_payload_uses_camel_case_and_omits_absent_fields():
    s = SessionState(use_cases=[UseCase(id="uc-1", in_scope=True)])
    payload = s.to_payload()
    assert payload["roles"] == []
    assert payload["useCases"] == [{"id": "uc-1", "inScope": True}]
    assert "org" not in payload
