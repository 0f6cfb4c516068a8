"""
ABI Registry
Loads contract ABIs and validates method lookups and arguments against them
"""

import os
import json
import glob
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
from web3 import Web3
from eth_abi import is_encodable
from loguru import logger

from .errors import AbiMismatchError, ArgumentTypeError, MethodNotFoundError
from .models import OperationKind

READ_MUTABILITY = ('view', 'pure')

# PUSH4 opcode; solidity dispatchers compare calldata selectors against PUSH4 operands
PUSH4 = b'\x63'


def is_valid_address(value: Any) -> bool:
    """
    Hex address check; mixed-case input must carry a valid EIP-55 checksum
    """
    if not isinstance(value, str) or not Web3.is_address(value):
        return False

    digits = value[2:] if value[:2].lower() == '0x' else value
    if digits in (digits.lower(), digits.upper()):
        return True
    return Web3.is_checksum_address(value)


class AbiDescriptor:
    """
    Method signatures and types of one contract

    Functions are indexed by name (overloads kept in declaration order) and
    classified as read (view/pure) or write (everything else).
    """

    def __init__(self, abi: Sequence[Dict], name: Optional[str] = None):
        """
        Initialize ABI Descriptor

        Args:
            abi: ABI entries as produced by solc / Hardhat
            name: Contract name used in messages
        """
        if not isinstance(abi, (list, tuple)) or not all(isinstance(e, dict) for e in abi):
            raise AbiMismatchError(f"ABI for {name or 'contract'} must be a list of entry objects")

        self.name = name
        self.abi: List[Dict] = json.loads(json.dumps(list(abi)))
        self._functions: Dict[str, List[Dict]] = {}

        for entry in self.abi:
            if entry.get('type', 'function') != 'function':
                continue
            if 'name' not in entry:
                raise AbiMismatchError(f"Function entry without a name in {self.label}")
            self._functions.setdefault(entry['name'], []).append(entry)

        self.fingerprint = Web3.keccak(text=json.dumps(self.abi, sort_keys=True)).hex()

    @classmethod
    def from_artifact(cls, path: str, name: Optional[str] = None) -> 'AbiDescriptor':
        """
        Load a Hardhat artifact or a bare ABI JSON file

        Args:
            path: Path to the JSON file
            name: Contract name (defaults to the artifact's contractName)

        Returns:
            AbiDescriptor
        """
        with open(path, 'r') as f:
            data = json.load(f)

        if isinstance(data, dict):
            if 'abi' not in data:
                raise AbiMismatchError(f"No 'abi' key in artifact: {path}")
            name = name or data.get('contractName')
            abi = data['abi']
        else:
            abi = data

        descriptor = cls(abi, name=name or os.path.splitext(os.path.basename(path))[0])
        logger.debug(f"Loaded ABI for {descriptor.label} from {path}")
        return descriptor

    @classmethod
    def from_contract_name(cls, name: str, artifacts_dir: str = 'artifacts') -> 'AbiDescriptor':
        """
        Find a compiled artifact by contract name

        Looks for <artifacts_dir>/**/<name>.json, skipping debug files.
        """
        pattern = os.path.join(artifacts_dir, '**', f'{name}.json')
        matches = sorted(p for p in glob.glob(pattern, recursive=True) if not p.endswith('.dbg.json'))

        if not matches:
            raise FileNotFoundError(f"No artifact for {name} under {artifacts_dir}")
        if len(matches) > 1:
            logger.warning(f"Multiple artifacts for {name}, using {matches[0]}")

        return cls.from_artifact(matches[0], name=name)

    @property
    def label(self) -> str:
        return self.name or 'contract'

    def __eq__(self, other) -> bool:
        return isinstance(other, AbiDescriptor) and self.fingerprint == other.fingerprint

    def __hash__(self) -> int:
        return hash(self.fingerprint)

    def __repr__(self) -> str:
        return f"AbiDescriptor(name={self.name!r}, functions={sorted(self._functions)})"

    @staticmethod
    def kind_of(entry: Dict) -> OperationKind:
        """Classify a function entry as read or write"""
        mutability = entry.get('stateMutability')
        if mutability is None:
            return OperationKind.READ if entry.get('constant') else OperationKind.WRITE
        return OperationKind.READ if mutability in READ_MUTABILITY else OperationKind.WRITE

    @staticmethod
    def canonical_type(param: Dict) -> str:
        """ABI type string with tuple components expanded"""
        typ = param['type']
        if not typ.startswith('tuple'):
            return typ
        inner = ','.join(AbiDescriptor.canonical_type(c) for c in param.get('components', []))
        return f"({inner}){typ[len('tuple'):]}"

    def signature(self, entry: Dict) -> str:
        inputs = ','.join(self.canonical_type(p) for p in entry.get('inputs', []))
        return f"{entry['name']}({inputs})"

    def selectors(self) -> Dict[bytes, str]:
        """Map of 4-byte selector to canonical signature"""
        return {
            bytes(Web3.keccak(text=self.signature(entry))[:4]): self.signature(entry)
            for entries in self._functions.values()
            for entry in entries
        }

    def missing_selectors(self, runtime_code: bytes) -> List[str]:
        """Signatures whose selector does not appear as a PUSH4 operand in the code"""
        code = bytes(runtime_code)
        return sorted(
            signature for selector, signature in self.selectors().items()
            if PUSH4 + selector not in code
        )

    def methods(self, kind: Optional[OperationKind] = None) -> List[str]:
        return sorted(
            name for name, entries in self._functions.items()
            if kind is None or any(self.kind_of(e) is kind for e in entries)
        )

    def resolve_function(
        self,
        method: str,
        kind: OperationKind,
        args: Sequence[Any] = ()
    ) -> Tuple[Dict, Tuple[Any, ...]]:
        """
        Find the entry to invoke and normalize its arguments

        Args:
            method: Function name
            kind: READ for call, WRITE for transact
            args: Positional argument values

        Returns:
            (ABI entry, normalized argument tuple)

        Raises:
            MethodNotFoundError: name unknown, or only declared with the other kind
            ArgumentTypeError: no overload accepts the arguments
        """
        entries = self._functions.get(method)
        if not entries:
            raise MethodNotFoundError(f"{self.label} has no method '{method}'")

        candidates = [e for e in entries if self.kind_of(e) is kind]
        if not candidates:
            other = 'call' if kind is OperationKind.WRITE else 'transact'
            raise MethodNotFoundError(
                f"{self.label}.{method} is not a {kind.value} method; use {other}()"
            )

        args = tuple(args)
        same_arity = [e for e in candidates if len(e.get('inputs', [])) == len(args)]
        if not same_arity:
            expected = sorted({len(e.get('inputs', [])) for e in candidates})
            raise ArgumentTypeError(
                f"{self.label}.{method} expects {' or '.join(map(str, expected))} "
                f"argument(s), got {len(args)}"
            )

        first_error = None
        for entry in same_arity:
            try:
                return entry, self._normalize_args(entry, args)
            except ArgumentTypeError as e:
                first_error = first_error or e

        raise first_error

    def _normalize_args(self, entry: Dict, args: Tuple[Any, ...]) -> Tuple[Any, ...]:
        normalized = []

        for position, (param, value) in enumerate(zip(entry.get('inputs', []), args)):
            typ = self.canonical_type(param)
            value = self._coerce(typ, value)
            bad_address = typ == 'address' and isinstance(value, str) and not is_valid_address(value)

            if bad_address or not is_encodable(typ, value):
                label = param.get('name') or f"#{position}"
                raise ArgumentTypeError(
                    f"{self.signature(entry)}: argument {label} is not a valid {typ}: {value!r}"
                )
            normalized.append(value)

        return tuple(normalized)

    @staticmethod
    def _coerce(typ: str, value: Any) -> Any:
        if typ == 'address' and is_valid_address(value):
            return Web3.to_checksum_address(value)
        if typ.startswith('bytes') and '[' not in typ and isinstance(value, str) and value.startswith('0x'):
            try:
                return Web3.to_bytes(hexstr=value)
            except ValueError:
                return value
        return value


def load_abi(source: Union['AbiDescriptor', Sequence[Dict], str], name: Optional[str] = None) -> AbiDescriptor:
    """
    Accept an AbiDescriptor, a raw ABI list or a path to an artifact/ABI file
    """
    if isinstance(source, AbiDescriptor):
        return source
    if isinstance(source, str):
        return AbiDescriptor.from_artifact(source, name=name)
    return AbiDescriptor(source, name=name)
