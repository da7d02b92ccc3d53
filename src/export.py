"""
Catalog export for the admin tab.

    catalog_frame()   records -> display/export DataFrame
    to_excel_bytes()  two-sheet workbook (Catalog + Summary), openpyxl engine
    to_csv_bytes()    headerless CSV in the import layout, so an exported
                      catalog can be edited and uploaded again

CSV layout mirrors the import format: model, compatibility, presentation.
VIP records get the VIP sentence as their compatibility text. Records with
no compatible models and no VIP flag have nothing to put in the second
column and are left out of the CSV (the importer would reject them).
"""

import io
from typing import List, Sequence

import pandas as pd

from records import CatalogRecord

VIP_SENTENCE = "Este Modelo já está disponível na tabela VIP"
EXPORT_SEPARATOR = " / "

CATALOG_COLUMNS = ['id', 'model', 'compatible with', 'VIP', 'compatible', 'presentation content']


def catalog_frame(records: Sequence[CatalogRecord]) -> pd.DataFrame:
    rows = []
    for record in records:
        rows.append({
            'id': record.id,
            'model': record.model_name,
            'compatible with': ', '.join(record.compatible_models),
            'VIP': record.is_vip,
            'compatible': record.is_compatible,
            'presentation content': record.presentation_content or '',
        })
    return pd.DataFrame(rows, columns=CATALOG_COLUMNS)


def import_rows(records: Sequence[CatalogRecord]) -> List[List[str]]:
    """Records as [model, compatibility, presentation] rows, import-ready."""
    rows = []
    for record in records:
        if record.is_vip:
            compatibility = VIP_SENTENCE
        elif record.compatible_models:
            compatibility = EXPORT_SEPARATOR.join(record.compatible_models)
        else:
            continue
        rows.append([record.model_name, compatibility, record.presentation_content or ''])
    return rows


def to_csv_bytes(records: Sequence[CatalogRecord]) -> bytes:
    df = pd.DataFrame(import_rows(records), columns=['model', 'compatibility', 'presentation'])
    return df.to_csv(header=False, index=False).encode('utf-8')


def to_excel_bytes(records: Sequence[CatalogRecord]) -> bytes:
    df = catalog_frame(records)
    summary = pd.DataFrame([
        {'metric': 'Total models', 'value': len(df)},
        {'metric': 'VIP models', 'value': int(df['VIP'].sum()) if len(df) else 0},
        {'metric': 'Compatible models', 'value': int(df['compatible'].sum()) if len(df) else 0},
    ])

    output = io.BytesIO()
    with pd.ExcelWriter(output, engine='openpyxl') as writer:
        df.to_excel(writer, sheet_name='Catalog', index=False)
        summary.to_excel(writer, sheet_name='Summary', index=False)
    return output.getvalue()
