#! /usr/bin/env python

import os
import sys
import json
from argparse import ArgumentParser
from typing import Optional, Union

from om2graph.container.file import OMFile
from om2graph.errors import OMError
from om2graph.graph import Model
from om2graph.metadata import Metadata
from om2graph.proto.ge_ir import decode_model_def
from om2graph.utils.logging import *

BufferLike = Union[bytes, bytearray, memoryview]


def match(buffer: BufferLike) -> Optional[str]:
    """Return ``'om'`` when the buffer carries the OM signature."""
    return 'om' if OMFile.match(buffer) else None


def load(
    input_om_file_path: Optional[str] = '',
    om_bytes: Optional[BufferLike] = None,
    metadata: Optional[Metadata] = None,
    metadata_path: Optional[str] = None,
    max_buffer_size: Optional[int] = None,
) -> Model:
    """Decode an OM container into a normalized model.

    Parameters
    ----------
    input_om_file_path: Optional[str]
        Input *.om file path. Ignored when om_bytes is given.

    om_bytes: Optional[bytes]
        The complete container already in memory.

    metadata: Optional[Metadata]
        Operator catalog used for friendly input/output names and
        attribute schemas.\n
        Default: the catalog at metadata_path.

    metadata_path: Optional[str]
        Operator catalog JSON.\n
        Default: $OM2GRAPH_METADATA_PATH, else the bundled om-metadata.json

    max_buffer_size: Optional[int]
        Reject containers larger than this many bytes.\n
        Default: $OM2GRAPH_MAX_BUFFER_SIZE, else unlimited

    Returns
    ----------
    model: Model
        One Graph per graph definition in the container.
    """
    if om_bytes is None:
        if not input_om_file_path:
            raise ValueError('One of input_om_file_path or om_bytes must be specified.')
        with open(input_om_file_path, 'rb') as f:
            om_bytes = f.read()

    file = OMFile.open(om_bytes, max_buffer_size=max_buffer_size)
    if file.model is None:
        raise OMError('File does not contain a model definition.')
    model_def = decode_model_def(file.model)
    if metadata is None:
        metadata = Metadata.open(metadata_path)
    model = Model(metadata, file, model_def)
    debug(
        f'Loaded {model.format} model: ' +
        f'graphs={len(model.graphs)} nodes={sum(len(g.nodes) for g in model.graphs)}'
    )
    return model


def _print_summary(model: Model) -> None:
    file = model.file
    info(Color.GREEN(f'{model.format}') + f' {file.name!r} version: {file.version} ops: {file.ops}')
    for partition in file.partitions:
        info(f'  partition {partition.type_name}: offset={partition.offset} size={partition.size}')
    if file.devices:
        for name, device in file.devices.items():
            info(f'  device {name}: {device}')
    for graph in model.graphs:
        info(Color.BOLD(f'graph {graph.name!r}') + f' nodes: {len(graph.nodes)}')
        for node in graph.nodes:
            inputs = ', '.join(
                argument.name + (' (const)' if argument.initializer is not None else '')
                for parameter in node.inputs for argument in parameter.arguments
            )
            outputs = ', '.join(
                f'{argument.name}: {argument.type}'
                for parameter in node.outputs for argument in parameter.arguments
            )
            info(f'  {Color.CYAN(node.type["name"])} {node.name} ({inputs}) -> ({outputs})')
            if node.control_dependencies:
                debug(f'    control dependencies: {", ".join(node.control_dependencies)}')
            for attribute in node.attributes:
                debug(f'    {attribute.name}: {attribute.type} = {attribute.value!r}')


def main():
    parser = ArgumentParser()
    iV_group = parser.add_mutually_exclusive_group(required=True)
    iV_group.add_argument(
        '-i',
        '--input_om_file_path',
        type=str,
        help='Input om file path.'
    )
    iV_group.add_argument(
        '-V',
        '--version',
        action='store_true',
        help='Show version and exit.'
    )
    parser.add_argument(
        '-oj',
        '--output_json_file_path',
        type=str,
        help='Write a JSON summary of the decoded model to this path.'
    )
    parser.add_argument(
        '-oo',
        '--output_onnx_file_path',
        type=str,
        help=\
            'Export the first graph to ONNX (custom ops in the ai.om domain) \n' +
            'for inspection with ONNX tooling.'
    )
    parser.add_argument(
        '-m',
        '--metadata_path',
        type=str,
        help=\
            'Operator metadata catalog (.json). \n' +
            'Default: bundled om-metadata.json'
    )
    parser.add_argument(
        '-mbs',
        '--max_buffer_size',
        type=int,
        help='Reject containers larger than this many bytes.'
    )
    verbosity_group = parser.add_mutually_exclusive_group()
    verbosity_group.add_argument(
        '-n',
        '--non_verbose',
        action='store_true',
        help='Shorthand to specify a verbosity of "error".'
    )
    verbosity_group.add_argument(
        '-v',
        '--verbosity',
        type=str,
        choices=['debug', 'info', 'warn', 'error'],
        default='info',
        help=\
            'Change the level of information printed. \n' +
            'Default: "info"'
    )
    args = parser.parse_args()

    if args.version:
        from om2graph import __version__
        print(__version__)
        sys.exit(0)

    set_log_level('error' if args.non_verbose else args.verbosity)

    if not os.path.exists(args.input_om_file_path):
        error(
            f'The specified *.om file does not exist. ' +
            f'input_om_file_path: {args.input_om_file_path}'
        )
        sys.exit(1)

    try:
        model = load(
            input_om_file_path=args.input_om_file_path,
            metadata_path=args.metadata_path,
            max_buffer_size=args.max_buffer_size,
        )
    except OMError as ex:
        error(f'[{ex.stage}] {ex.message}')
        sys.exit(1)

    _print_summary(model)

    if args.output_json_file_path:
        from om2graph.export import model_to_dict
        with open(args.output_json_file_path, 'w', encoding='utf-8') as f:
            json.dump(model_to_dict(model), f, indent=2)
        info(Color.GREEN(f'JSON summary output complete!') + f' {args.output_json_file_path}')

    if args.output_onnx_file_path:
        if not model.graphs:
            error('The model contains no graph to export.')
            sys.exit(1)
        import onnx
        from om2graph.export import export_onnx
        onnx.save(export_onnx(model.graphs[0]), args.output_onnx_file_path)
        info(Color.GREEN(f'ONNX output complete!') + f' {args.output_onnx_file_path}')


if __name__ == '__main__':
    main()
