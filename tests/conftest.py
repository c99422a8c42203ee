"""Pytest configuration and fixtures for codeanalysis tests."""

from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from codeanalysis.analyzer import AnalysisResult, analyze
from codeanalysis.cli import collect_files
from codeanalysis.config import SKIP_DIRS, AnalysisConfig


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path: Path, monkeypatch):
    """Keep tests away from a real ~/.codeanalysis/config.toml."""
    monkeypatch.setattr("codeanalysis.config.CONFIG_FILE", tmp_path / "no-config.toml")
    monkeypatch.delenv("CODEANALYSIS_TOLERANT_PARSING", raising=False)


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to the sample TypeScript project."""
    return Path(__file__).parent / "fixtures" / "ts_project"


@pytest.fixture
def sample_files(sample_project_path: Path) -> List[Dict[str, str]]:
    return collect_files(sample_project_path, SKIP_DIRS)


@pytest.fixture
def sample_result(sample_files) -> AnalysisResult:
    return analyze(sample_files)


@pytest.fixture
def analyze_sources() -> Callable[..., AnalysisResult]:
    """Analyze inline sources given as a ``{path: content}`` mapping."""

    def _run(sources: Dict[str, str], config: Optional[AnalysisConfig] = None) -> AnalysisResult:
        files = [{"path": path, "content": text} for path, text in sources.items()]
        return analyze(files, config)

    return _run


@pytest.fixture
def sample_ts_code() -> str:
    """Sample TypeScript module for extraction tests."""
    return '''import { helper } from "./helper";

export function greet(name: string, excited?: boolean): string {
  return excited ? `Hello, ${name}!` : `Hello, ${name}`;
}

export class Calculator {
  private total = 0;

  add(a: number, b: number): number {
    return a + b;
  }

  async multiply(a: number, b: number): Promise<number> {
    let result = this.add(a, 0);
    for (let i = 1; i < b; i++) {
      result = this.add(result, a);
    }
    return result;
  }

  reset = () => {
    this.total = 0;
  };
}

export interface Shape {
  area(): number;
}

export const double = (x: number) => x * 2;
export const VERSION = "1.0";
'''
