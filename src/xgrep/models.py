"""Pydantic models for match output"""

from pydantic import BaseModel, ConfigDict, Field


class Attribute(BaseModel):
    """An attribute as it appears on an element"""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description='Local name of the attribute')
    value: str = Field(..., description='Attribute value')
    namespace: str = Field(default='', description='Namespace URI of the attribute, empty when unqualified')

    def to_cli(self) -> str:
        if self.namespace:
            return f'{{{self.namespace}}}{self.name}="{self.value}"'
        return f'{self.name}="{self.value}"'


class MatchRecord(BaseModel):
    """An element that passed every filter"""

    filename: str = Field(..., description='File the element was found in')
    namespace: str = Field(..., description='Namespace URI of the element')
    tag: str = Field(..., description='Local name of the element')
    attributes: list[Attribute] = Field(default_factory=list, description='Element attributes in document order')
    content: str = Field(..., description='Inner XML of the element')

    def to_cli(self) -> str:
        """Format the record as a human-readable block (leading and trailing blank line included)"""
        attrs = ' '.join(attr.to_cli() for attr in self.attributes)
        return (
            f'\nFilename:{self.filename}\n'
            f'Namespace: {self.namespace}\n'
            f'Tag: {self.tag}\n'
            f'Attributes: [{attrs}]\n'
            f'Content:\n{self.content}\n'
        )


class ScanSummary(BaseModel):
    """Counters collected while scanning a batch of files"""

    files_scanned: int = Field(default=0, description='Files that were parsed and walked')
    files_failed: int = Field(default=0, description='Files that could not be read, parsed or walked')
    matches: int = Field(default=0, description='Match records emitted')
    time: float = Field(default=0.0, description='Wall time in seconds')

    @property
    def files_total(self) -> int:
        return self.files_scanned + self.files_failed
