"""
contacts/tests.py

Covers:
  - import_contacts      : duplicate screening against stored and in-batch rows
  - import_contacts_csv  : UTF-8 CSV parsing
  - import_contacts      : management command output
"""

import io

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from contacts.models import Contact
from contacts.services import import_contacts, import_contacts_csv
from teams.models import Team


# ── Helpers ────────────────────────────────────────────────────────────────────

def _make_contact(**kwargs) -> Contact:
    defaults = dict(company_name="Muster AG")
    defaults.update(kwargs)
    return Contact.objects.create(**defaults)


def _build_csv(rows: list[dict]) -> io.BytesIO:
    """UTF-8 comma-separated CSV built in-memory; first row supplies the headers."""
    headers = list(rows[0].keys())
    lines = [",".join(headers)]
    for row in rows:
        lines.append(",".join(str(row.get(h, "")) for h in headers))
    buf = io.BytesIO("\n".join(lines).encode("utf-8-sig"))
    buf.seek(0)
    return buf


# ── import_contacts ────────────────────────────────────────────────────────────

class ImportContactsTests(TestCase):
    def setUp(self):
        self.team = Team.objects.create(name="Zürich")

    def test_creates_new_contacts(self):
        summary = import_contacts(
            [
                {"company_name": "Alpha AG", "phone": "044 111 22 33"},
                {"company_name": "Beta GmbH", "email": "info@beta.ch"},
            ],
            team_id=self.team.pk,
        )
        self.assertEqual(summary["total_rows"], 2)
        self.assertEqual(summary["created"], 2)
        self.assertEqual(summary["skipped"], 0)
        self.assertEqual(Contact.objects.filter(team=self.team).count(), 2)

    def test_skips_duplicate_of_stored_contact_by_phone(self):
        _make_contact(company_name="Alpha AG", phone="+41 44 111 22 33", team=self.team)
        summary = import_contacts(
            [{"company_name": "Alpha Holding", "phone": "+41-44-111-22-33"}],
            team_id=self.team.pk,
        )
        self.assertEqual(summary["created"], 0)
        self.assertEqual(summary["skipped"], 1)
        self.assertEqual(summary["duplicate_reasons"]["phone"], 1)

    def test_skips_duplicates_within_the_same_batch(self):
        summary = import_contacts(
            [
                {"company_name": "Gamma AG", "email": "hr@gamma.ch"},
                {"company_name": "Gamma Services", "email": "jobs@gamma.ch"},
                {"company_name": "gamma  ag"},
            ],
            team_id=self.team.pk,
        )
        self.assertEqual(summary["created"], 1)
        self.assertEqual(summary["skipped"], 2)
        self.assertEqual(summary["duplicate_reasons"]["email_domain"], 1)
        self.assertEqual(summary["duplicate_reasons"]["name"], 1)

    def test_external_id_match_reported_as_graph_id(self):
        _make_contact(company_name="Delta AG", external_id="AAMkAD-1", team=self.team)
        summary = import_contacts(
            [{"company_name": "Delta Renamed", "external_id": "AAMkAD-1"}],
            team_id=self.team.pk,
            source=Contact.Source.OUTLOOK,
        )
        self.assertEqual(summary["duplicate_reasons"]["graph_id"], 1)

    def test_public_email_domain_does_not_block_import(self):
        _make_contact(company_name="Epsilon AG", email="epsilon@gmail.com", team=self.team)
        summary = import_contacts(
            [{"company_name": "Zeta GmbH", "email": "zeta@gmail.com"}],
            team_id=self.team.pk,
        )
        self.assertEqual(summary["created"], 1)

    def test_other_team_contacts_are_not_duplicates(self):
        other = Team.objects.create(name="Bern")
        _make_contact(company_name="Alpha AG", team=other)
        summary = import_contacts([{"company_name": "Alpha AG"}], team_id=self.team.pk)
        self.assertEqual(summary["created"], 1)

    def test_missing_company_name_is_an_error(self):
        summary = import_contacts(
            [{"company_name": "  ", "phone": "0441112233"}, {"company_name": "Eta AG"}],
            team_id=self.team.pk,
        )
        self.assertEqual(summary["created"], 1)
        self.assertEqual(len(summary["errors"]), 1)
        self.assertIn("Row 1", summary["errors"][0])

    def test_source_is_stored(self):
        import_contacts([{"company_name": "Theta AG"}], source=Contact.Source.MANUAL)
        self.assertEqual(Contact.objects.get(company_name="Theta AG").source, "manual")


# ── import_contacts_csv ────────────────────────────────────────────────────────

class ImportContactsCsvTests(TestCase):
    def test_reads_header_and_rows(self):
        buf = _build_csv([
            {"company_name": "Iota AG", "email": "Info@IOTA.ch", "canton": "zh"},
            {"company_name": "Kappa AG", "email": "", "canton": ""},
        ])
        summary = import_contacts_csv(buf)
        self.assertEqual(summary["created"], 2)
        iota = Contact.objects.get(company_name="Iota AG")
        self.assertEqual(iota.email, "info@iota.ch")
        self.assertEqual(iota.canton, "ZH")
        self.assertEqual(iota.source, Contact.Source.CSV_IMPORT)
        self.assertIsNone(Contact.objects.get(company_name="Kappa AG").email)

    def test_error_rows_are_numbered_from_the_header(self):
        buf = _build_csv([
            {"company_name": "Lambda AG", "phone": ""},
            {"company_name": "", "phone": "0441112233"},
        ])
        summary = import_contacts_csv(buf)
        self.assertEqual(summary["created"], 1)
        self.assertEqual(len(summary["errors"]), 1)
        self.assertTrue(summary["errors"][0].startswith("Row 3:"))


# ── import_contacts command ────────────────────────────────────────────────────

class ImportContactsCommandTests(TestCase):
    def test_unknown_team_raises_command_error(self):
        with self.assertRaises(CommandError):
            call_command("import_contacts", "--file", "contacts.csv", "--team-id", "999")

    def test_missing_file_raises_command_error(self):
        with self.assertRaises(CommandError):
            call_command("import_contacts", "--file", "/nonexistent/contacts.csv")
