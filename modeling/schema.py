# Table schemas
# Column types are declared up front and validated when a file is read

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

NUMERIC = 'numeric'
CATEGORICAL = 'categorical'


@dataclass(frozen=True)
class ColumnSpec:
    name: str
    kind: str = NUMERIC
    levels: Optional[Tuple] = None
    # raw file value -> level, e.g. {'1': 'Yes'}
    aliases: Optional[Dict[str, str]] = None

    def __post_init__(self):
        if self.kind not in (NUMERIC, CATEGORICAL):
            raise ValueError(f"Unknown column kind '{self.kind}' for column '{self.name}'")
        if self.kind == CATEGORICAL and not self.levels:
            raise ValueError(f"Categorical column '{self.name}' needs a level set")


@dataclass(frozen=True)
class TableSchema:
    name: str
    columns: Tuple[ColumnSpec, ...]
    outcome: str
    positive_class: Optional[str] = None
    description: str = field(default='', compare=False)

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    @property
    def task_type(self) -> str:
        return 'classification' if self[self.outcome].kind == CATEGORICAL else 'regression'

    def __getitem__(self, name: str) -> ColumnSpec:
        for col in self.columns:
            if col.name == name:
                return col
        raise KeyError(name)


# Cardiovascular-risk table: binary factors are stored as 0/1 in the CSV,
# sex is stored as its label.
CHD_SCHEMA = TableSchema(
    name='chd',
    columns=(
        ColumnSpec('sex', CATEGORICAL, ('Female', 'Male'), {'0': 'Female', '1': 'Male'}),
        ColumnSpec('age'),
        ColumnSpec('education', CATEGORICAL, ('1', '2', '3', '4')),
        ColumnSpec('smoker', CATEGORICAL, ('0', '1')),
        ColumnSpec('cpd'),
        ColumnSpec('stroke', CATEGORICAL, ('0', '1')),
        ColumnSpec('HTN', CATEGORICAL, ('0', '1')),
        ColumnSpec('diabetes', CATEGORICAL, ('0', '1')),
        ColumnSpec('chol'),
        ColumnSpec('DBP'),
        ColumnSpec('BMI'),
        ColumnSpec('HR'),
        ColumnSpec('CHD', CATEGORICAL, ('No', 'Yes'), {'0': 'No', '1': 'Yes'}),
    ),
    outcome='CHD',
    positive_class='Yes',
    description='Ten-year coronary heart disease outcome with cardiovascular risk factors',
)

DIABETES_SCHEMA = TableSchema(
    name='diabetes',
    columns=(
        ColumnSpec('age'),
        ColumnSpec('sex', CATEGORICAL, ('1', '2')),
        ColumnSpec('BMI'),
        ColumnSpec('BP'),
        ColumnSpec('TC'),
        ColumnSpec('LDL'),
        ColumnSpec('HDL'),
        ColumnSpec('TCH'),
        ColumnSpec('TG'),
        ColumnSpec('GC'),
        ColumnSpec('progr'),
    ),
    outcome='progr',
    description='One-year disease progression with baseline measurements',
)

SCHEMAS: Dict[str, TableSchema] = {
    CHD_SCHEMA.name: CHD_SCHEMA,
    DIABETES_SCHEMA.name: DIABETES_SCHEMA,
}


def get_schema(name: str) -> TableSchema:
    if name not in SCHEMAS:
        raise ValueError(f"Unknown schema '{name}'. Available: {sorted(SCHEMAS)}")
    return SCHEMAS[name]
