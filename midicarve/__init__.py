# midicarve — MIDI File Carving & Repair Engine
# Pure-Python recovery of Standard MIDI Files from raw binary blobs.
#
# Architecture (bottom → top):
#   mmap_reader   — Blob loader (mmap with buffered-read fallback)
#   signatures    — Chunk signatures, end-of-track marker, carving policy
#   records       — Header / track records produced while carving
#   chunk_parser  — MThd + MTrk parsing, trailer repair
#   engine        — Track chain recovery + resynchronization
#   orphan        — Default header for MTrk chunks found without an MThd
#   writer        — Canonical SMF serialization, naming, integrity readback
#   scanner       — Top-level byte-by-byte scan over the blob
