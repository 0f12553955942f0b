from qp_common.merge import (
    aggregate_records,
    aggregate_rows,
    build_aggregate,
    extract_families,
    filter_by_family,
    merge_qualifications,
    merge_records,
)
from qp_common.schema import CertificateRow, CycleRow, JoinedRecord, PrimaryRow


def primary(code, family="", name="", level="", forecast=None):
    row = {"Código QP": code, "Familia profesional": family, "Cualificación profesional": name, "Nivel": level}
    if forecast is not None:
        row["Previsión 2025"] = forecast
    return row


def certificate(code, text="", alt="", **extra):
    return {"Código QP": code, "Código y certificado": text, "Certificado Profesional": alt, **extra}


def cycle(code, tier="", name="", **extra):
    return {"Código QP": code, "Básico/Medio/Superior": tier, "Ciclo Formativo": name, **extra}


def test_build_aggregate_concatenates_in_input_order():
    aggregate = build_aggregate([("QP1", "A"), (" qp1 ", "B"), ("QP2", "C"), ("qp1", "D")])
    assert aggregate == {"qp1": "A | B | D", "qp2": "C"}


def test_build_aggregate_skips_blank_codes_and_keeps_blank_text():
    aggregate = build_aggregate([("", "lost"), (None, "lost"), ("  ", "lost"), ("QP1", ""), ("QP1", "X")])
    assert aggregate == {"qp1": " | X"}


def test_aggregate_rows_uses_prioritized_columns():
    rows = [
        certificate("QP1", text="C1"),
        certificate("QP1", alt="C2"),
        {"Código QP": " ", "Código alternativo": "QP1", "Código y certificado": "C3"},
    ]
    aggregate = aggregate_rows(
        rows,
        key_columns=["Código QP", "Código alternativo"],
        display_columns=["Código y certificado", "Certificado Profesional"],
    )
    assert aggregate == {"qp1": "C1 | C2 | C3"}


def test_aggregate_records_for_cycles_builds_labels():
    aggregate = aggregate_records([CycleRow(code="QP1", tier="Medio", cycle="A"), CycleRow(code="QP1", cycle="B")])
    assert aggregate == {"qp1": "Medio - A |  - B"}


def test_end_to_end_single_qualification():
    records, families = merge_qualifications(
        [primary("QP1", family="F1", name="N1", level="2")],
        [certificate(" qp1 ", text="C1")],
        [cycle("QP1", tier="Medio", name="Mecánica")],
    )

    assert records == [
        JoinedRecord(
            family="F1",
            code="QP1",
            name="N1",
            level="2",
            forecast="",
            certificates="C1",
            cycles="Medio - Mecánica",
        )
    ]
    assert families == ["F1"]


def test_primary_only_code_has_empty_aggregates():
    records, _ = merge_qualifications([primary("QP1", family="F", forecast="Alta")], [], [])
    assert len(records) == 1
    assert records[0].certificates == ""
    assert records[0].cycles == ""
    assert records[0].forecast == "Alta"


def test_certificate_only_code_concatenates_all_rows():
    records, _ = merge_qualifications([], [certificate("QP9", text="X"), certificate("qp9", text="Y")], [])
    assert len(records) == 1
    assert records[0].certificates == "X | Y"
    assert records[0].cycles == ""
    assert records[0].code == "QP9"


def test_duplicate_primary_rows_last_wins():
    records, _ = merge_qualifications(
        [
            primary("QP1", family="F1", name="first", level="1"),
            primary("QP2", family="F1", name="other"),
            primary(" qp1", family="F2", name="second", level="3"),
        ],
        [],
        [],
    )
    assert [r.name for r in records] == ["second", "other"]
    assert records[0].family == "F2"
    assert records[0].level == "3"
    assert records[0].code == " qp1"


def test_output_keys_are_unique():
    result = merge_qualifications(
        [primary("A"), primary("a "), primary("B")],
        [certificate("b", text="x"), certificate("C", text="y"), certificate(" c", text="z")],
        [cycle("c"), cycle("D"), cycle("d")],
    )
    keys = [record.key for record in result.records]
    assert keys == ["a", "b", "c", "d"]
    assert len(keys) == len(set(keys))


def test_blank_primary_code_is_dropped_entirely():
    result = merge_qualifications(
        [primary("", family="Ghost", name="no code"), primary("   ", family="Ghost")],
        [],
        [],
    )
    assert result.records == []
    assert result.families == []
    assert result.report.skipped_blank_codes["primary"] == 2


def test_orphans_take_fields_from_their_source():
    records, _ = merge_qualifications(
        [],
        [certificate("QC1", text="Cert", **{"Familia profesional": "F", "Cualificación Profesional": "Cert name", "Nivel": "1"})],
        [cycle(" QT1", tier="Superior", name="Ciclo", **{"Familia profesional": "G", "Nombre cualificación": "Cycle name", "Nivel": "3"})],
    )
    cert_record, cycle_record = records
    assert cert_record == JoinedRecord(
        family="F", code="QC1", name="Cert name", level="1", forecast="", certificates="Cert", cycles=""
    )
    assert cycle_record == JoinedRecord(
        family="G", code=" QT1", name="Cycle name", level="3", forecast="", certificates="", cycles="Superior - Ciclo"
    )


def test_code_in_both_secondaries_created_by_certificate_pass():
    result = merge_qualifications(
        [],
        [certificate("QP5", text="C", **{"Familia profesional": "FromCert"})],
        [
            cycle("qp5", tier="Medio", name="A", **{"Familia profesional": "FromCycle"}),
            cycle("QP5", tier="Superior", name="B"),
        ],
    )
    assert len(result.records) == 1
    record = result.records[0]
    assert record.family == "FromCert"
    assert record.code == "QP5"
    assert record.certificates == "C"
    assert record.cycles == "Medio - A | Superior - B"
    assert result.report.certificate_orphans == 1
    assert result.report.cycle_orphans == 0


def test_output_order_primary_then_certificate_then_cycle_orphans():
    result = merge_qualifications(
        [primary("P2"), primary("P1")],
        [certificate("C2"), certificate("P1"), certificate("C1")],
        [cycle("T1"), cycle("C1"), cycle("T0")],
    )
    assert [r.code for r in result.records] == ["P2", "P1", "C2", "C1", "T1", "T0"]
    assert result.report.primary_records == 2
    assert result.report.certificate_orphans == 2
    assert result.report.cycle_orphans == 2
    assert result.report.total_records == 6


def test_merge_records_accepts_typed_rows():
    result = merge_records(
        [PrimaryRow(code="QP1", family="F")],
        [CertificateRow(code="QP1", certificate_alt="Alt")],
        [CycleRow(code="QP1", tier="Básico", cycle="X")],
    )
    assert result.records[0].certificates == "Alt"
    assert result.records[0].cycles == "Básico - X"
    assert result.report.input_rows == {"primary": 1, "certificates": 1, "cycles": 1}


def test_extract_families_sorted_distinct_non_blank():
    records = [
        JoinedRecord(family="Sanidad", code="1"),
        JoinedRecord(family="Informática", code="2"),
        JoinedRecord(family="Informática", code="3"),
        JoinedRecord(family="", code="4"),
        JoinedRecord(family="  ", code="5"),
    ]
    assert extract_families(records) == ["Informática", "Sanidad"]


def test_filter_by_family_exact_match():
    records = [
        JoinedRecord(family="Sanidad", code="1"),
        JoinedRecord(family="sanidad", code="2"),
        JoinedRecord(family="Sanidad", code="3"),
    ]
    assert [r.code for r in filter_by_family(records, "Sanidad")] == ["1", "3"]
    assert filter_by_family(records, "Química") == []
    assert filter_by_family(records, "") == []
    assert filter_by_family(records, None) == []
