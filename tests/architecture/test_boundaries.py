from pytest_archon import archrule


def test_domain_isolation() -> None:
    """
    Domain types should be self-contained.
    They must not import ports, adapters, persistence or processing.
    """
    (
        archrule("domain_isolation")
        .match("coprocessor_indexer.domain*")
        .should_not_import("coprocessor_indexer.ports*")
        .should_not_import("coprocessor_indexer.adapters*")
        .should_not_import("coprocessor_indexer.persistence*")
        .should_not_import("coprocessor_indexer.processing*")
        .check("coprocessor_indexer")
    )


def test_ports_do_not_know_implementations() -> None:
    """Ports are protocols and ABCs only."""
    (
        archrule("ports_independence")
        .match("coprocessor_indexer.ports*")
        .should_not_import("coprocessor_indexer.adapters*")
        .should_not_import("coprocessor_indexer.persistence*")
        .check("coprocessor_indexer")
    )


def test_processing_is_storage_agnostic() -> None:
    """
    Batch pre/post processing and dispatch work on domain types and ports,
    never on a concrete store.
    """
    (
        archrule("processing_storage_agnostic")
        .match("coprocessor_indexer.processing*")
        .match("coprocessor_indexer.dispatch*")
        .should_not_import("coprocessor_indexer.adapters*")
        .should_not_import("coprocessor_indexer.persistence*")
        .should_not_import("sqlalchemy*")
        .check("coprocessor_indexer")
    )


def test_pipeline_is_storage_agnostic() -> None:
    """The coordinator, manager and supervisor only see ports."""
    (
        archrule("pipeline_storage_agnostic")
        .match("coprocessor_indexer.coprocessor")
        .match("coprocessor_indexer.super_processor")
        .match("coprocessor_indexer.sync")
        .match("coprocessor_indexer.manager")
        .match("coprocessor_indexer.supervisor")
        .should_not_import("coprocessor_indexer.adapters*")
        .should_not_import("coprocessor_indexer.persistence*")
        .should_not_import("coprocessor_indexer.coprocessors*")
        .should_not_import("coprocessor_indexer.cli")
        .check("coprocessor_indexer")
    )


def test_persistence_does_not_import_coprocessors() -> None:
    """Concrete coprocessors build on persistence, not the other way around."""
    (
        archrule("persistence_layering")
        .match("coprocessor_indexer.persistence*")
        .should_not_import("coprocessor_indexer.coprocessors*")
        .should_not_import("coprocessor_indexer.cli")
        .check("coprocessor_indexer")
    )
