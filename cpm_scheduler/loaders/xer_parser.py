"""
XER File Parser for Primavera P6 Schedule Data

Parses Primavera P6 XER exports into pandas DataFrames, one per table.

XER Format:
- Tab-delimited text files
- Structure: ERMHDR (header) followed by %T (table), %F (fields), %R (rows)
- Each table represents a different entity (tasks, relationships, calendars, etc.)
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import pandas as pd

logger = logging.getLogger(__name__)

# P6 writes the export in the client's code page
ENCODINGS = ('utf-8', 'gbk', 'cp1252')


class XERParser:
    """Parse Primavera P6 XER files into structured data"""

    def __init__(self, file_path: Union[str, Path]):
        """
        Initialize the parser with an XER file path

        Args:
            file_path: Path to the XER file
        """
        self.file_path = Path(file_path)
        self.tables: Dict[str, pd.DataFrame] = {}
        self.header: Dict[str, object] = {}

    def parse(self) -> Dict[str, pd.DataFrame]:
        """
        Parse the XER file and return all tables as DataFrames

        Returns:
            Dictionary mapping table names to pandas DataFrames
        """
        lines = self._read_text().splitlines()
        if lines and lines[0].startswith('ERMHDR'):
            self._parse_header(lines[0])
            lines = lines[1:]
        self._parse_tables(lines)

        logger.debug(f"Parsed {self.file_path.name}: {len(self.tables)} tables")
        return self.tables

    def _read_text(self) -> str:
        raw = self.file_path.read_bytes()
        for encoding in ENCODINGS:
            try:
                return raw.decode(encoding)
            except UnicodeDecodeError:
                logger.debug(f"{self.file_path.name} is not {encoding}, trying next encoding")
        return raw.decode(ENCODINGS[-1], errors='replace')

    def _parse_header(self, line: str) -> None:
        """Parse the ERMHDR header section"""
        # Header format: ERMHDR\tversion\texport date\t...
        parts = line.rstrip('\r\n').split('\t')
        self.header['raw'] = line.strip()
        if len(parts) > 1:
            self.header['data'] = parts[1:]

    def _parse_tables(self, lines: Iterable[str]) -> None:
        """Parse all tables in the XER file"""
        current_table = None
        current_fields = []
        current_rows = []

        for line in lines:
            # Trailing empty fields are significant, only strip the line ending
            line = line.rstrip('\r\n')

            if not line.strip():
                continue

            if line.startswith('%T'):
                # Save previous table if exists
                if current_table and current_fields:
                    self._save_table(current_table, current_fields, current_rows)

                parts = line.split('\t')
                current_table = parts[1].strip() if len(parts) > 1 else None
                current_fields = []
                current_rows = []

            elif line.startswith('%F'):
                parts = line.split('\t')
                current_fields = [f.strip() for f in parts[1:]]

            elif line.startswith('%R'):
                parts = line.split('\t')
                current_rows.append(parts[1:])

            elif line.startswith('%E'):
                if current_table and current_fields:
                    self._save_table(current_table, current_fields, current_rows)
                current_table = None
                current_fields = []
                current_rows = []

        # Save last table if not ended with %E
        if current_table and current_fields:
            self._save_table(current_table, current_fields, current_rows)

    def _save_table(self, table_name: str, fields: List[str], rows: List[List[str]]) -> None:
        """Convert table data to DataFrame and store"""
        normalized_rows = []
        for row in rows:
            # Pad short rows, truncate long rows
            if len(row) < len(fields):
                row = row + [''] * (len(fields) - len(row))
            elif len(row) > len(fields):
                row = row[:len(fields)]
            normalized_rows.append(row)

        self.tables[table_name] = pd.DataFrame(normalized_rows, columns=fields, dtype=str)

    def get_table(self, table_name: str) -> Optional[pd.DataFrame]:
        """
        Get a specific table by name

        Returns:
            DataFrame or None if table doesn't exist
        """
        return self.tables.get(table_name)

    def list_tables(self) -> List[str]:
        """Get list of all available table names"""
        return list(self.tables.keys())

    def summary(self) -> Dict:
        """
        Get a summary of the XER file contents

        Returns:
            Dictionary with summary statistics
        """
        summary = {
            'file_path': str(self.file_path),
            'total_tables': len(self.tables),
            'tables': {}
        }

        for table_name, df in self.tables.items():
            summary['tables'][table_name] = {
                'rows': len(df),
                'columns': len(df.columns),
                'column_names': list(df.columns)
            }

        return summary
