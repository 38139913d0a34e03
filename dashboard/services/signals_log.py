# dashboard/services/signals_log.py
"""
Read-only access to the append-only signals CSV written by the trading loop.
The dashboard never writes to this file.
"""
import logging
import os
from typing import Any, Dict, List

import numpy as np
import pandas as pd

from dashboard.schemas.telemetry import HistoryPage
from dashboard.utils.pagination import page_bounds

logger = logging.getLogger(__name__)

class SignalsLogError(Exception):
    """The signals log exists but could not be parsed."""

class SignalsLogReader:
    def __init__(self, path: str):
        self.path = path

    def _load(self) -> pd.DataFrame:
        if not os.path.exists(self.path) or os.path.getsize(self.path) == 0:
            return pd.DataFrame()

        try:
            df = pd.read_csv(self.path, skipinitialspace=True)
        except pd.errors.EmptyDataError:
            return pd.DataFrame()
        except (pd.errors.ParserError, OSError, UnicodeDecodeError) as e:
            logger.error(f"Error reading CSV file {self.path}: {e}")
            raise SignalsLogError(str(e)) from e

        df.columns = [str(c).strip() for c in df.columns]
        return df

    @staticmethod
    def _records(df: pd.DataFrame) -> List[Dict[str, Any]]:
        # blanks become None, numpy scalars become plain Python values
        df = df.astype(object).where(df.notna(), None)
        return [
            {k: (v.item() if isinstance(v, np.generic) else v) for k, v in row.items()}
            for row in df.to_dict(orient="records")
        ]

    def read_page(self, limit: int = 100, offset: int = 0) -> HistoryPage:
        df = self._load()
        total = len(df)
        start, end = page_bounds(total, limit, offset)

        return HistoryPage(
            rows=self._records(df.iloc[start:end]) if total else [],
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + limit < total,
        )
