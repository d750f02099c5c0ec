"""Write FastTracker II Extended Module (.xm) files."""

from .binary_writer import BinaryWriter  # noqa: F401
from .builders import (  # noqa: F401
    add_instrument,
    add_pattern,
    add_sample_to_instrument,
    create_empty_envelope,
    create_instrument,
    create_module,
    create_pattern,
    create_sample,
    note_name_to_value,
    note_value_to_name,
    save_to_file,
    set_order,
)
from .delta import delta_decode, delta_encode, encode_sample_data  # noqa: F401
from .note_packer import NoteConflictError, pack_note, volume_column_byte  # noqa: F401
from .structs import (  # noqa: F401
    HEADER_SIZE,
    NOTE_OFF,
    SIGNATURE,
    EnvelopeFlags,
    EnvelopePoint,
    LoopType,
    SampleWidth,
    XMEffect,
    XMEnvelope,
    XMHeader,
    XMInstrument,
    XMInstrumentExtendedHeader,
    XMModule,
    XMNote,
    XMPattern,
    XMSample,
)
from .writer import CardinalityError, XMWriter, validate_module, write_module  # noqa: F401
