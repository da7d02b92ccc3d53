"""
Tests for catalog export (Excel workbook and import-format CSV).

Run with: pytest tests/test_export.py -v
"""

import io

import pandas as pd

from conftest import make_record
from export import VIP_SENTENCE, catalog_frame, import_rows, to_csv_bytes, to_excel_bytes
from ingest import ingest_file


def sample_records():
    return [
        make_record("iPhone 11", ["iPhone 11", "iPhone XR"]),
        make_record("Galaxy S23 Ultra", vip=True),
        make_record("Moto G8", ["Moto G8 Power"], content='<p class="x">3D, privacy</p>'),
        make_record("Moto G9", []),
    ]


class TestCatalogFrame:

    def test_columns_and_rows(self):
        df = catalog_frame(sample_records())
        assert list(df['model']) == ["iPhone 11", "Galaxy S23 Ultra", "Moto G8", "Moto G9"]
        assert df.loc[0, 'compatible with'] == "iPhone 11, iPhone XR"
        assert bool(df.loc[1, 'VIP']) is True

    def test_empty(self):
        assert catalog_frame([]).empty


class TestCsvExport:

    def test_vip_rows_carry_sentence(self):
        rows = import_rows(sample_records())
        assert rows[1] == ["Galaxy S23 Ultra", VIP_SENTENCE, '']

    def test_listless_rows_left_out(self):
        names = [row[0] for row in import_rows(sample_records())]
        assert "Moto G9" not in names

    def test_reimport_matches(self, tmp_path):
        path = tmp_path / "export.csv"
        path.write_bytes(to_csv_bytes(sample_records()))
        records = ingest_file(str(path)).records
        assert [r.model_name for r in records] == ["iPhone 11", "Galaxy S23 Ultra", "Moto G8"]
        assert records[0].compatible_models == ["iPhone 11", "iPhone XR"]
        assert records[1].is_vip is True
        assert records[2].presentation_content == '<p class="x">3D, privacy</p>'


class TestExcelExport:

    def test_workbook_sheets(self):
        workbook = pd.read_excel(io.BytesIO(to_excel_bytes(sample_records())), sheet_name=None)
        assert set(workbook) == {'Catalog', 'Summary'}
        assert len(workbook['Catalog']) == 4
        summary = dict(zip(workbook['Summary']['metric'], workbook['Summary']['value']))
        assert summary['Total models'] == 4
        assert summary['VIP models'] == 1

    def test_empty_catalog(self):
        workbook = pd.read_excel(io.BytesIO(to_excel_bytes([])), sheet_name=None)
        assert workbook['Catalog'].empty
