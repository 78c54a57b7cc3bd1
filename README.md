# prxkit

Pure-Python helpers for plugin configuration files and raw x86-64 machine
code. No runtime dependencies.

- `prxkit.ini`: an INI reader and writer that keeps comment lines, blank
  lines and inline comments.
- `prxkit.files`: file size, read, write, existence and "touch" helpers,
  plus the fixed paths of the plugin layout (`BASE_PATH`, `HDD_INI_PATH`,
  `USB_INI_PATH`, `PRX_LOADER_PATH` and others).
- `prxkit.stringid`: 64-bit FNV-1a style string ids.
- `prxkit.hde64`: an x86-64 instruction length decoder.
- `prxkit.memory`: IDA-style byte pattern scanning, value and string
  search, jump encoding, hex dumps and code-cave prologue hooks.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## INI files

```python
from prxkit.ini import load

ini = load("hen.ini")             # a file that cannot be opened gives an empty document
ini.set("HEN", "enabled", "1", "turn the plugin on")
ini.add_comment(None, "header comment")
print(ini.get("HEN", "enabled"))  # "1"
ini.save()
```

`get` returns `None` for a missing section or key. `delete_key`,
`delete_section`, `add_section_comment` and `add_comment` with a section
name raise `KeyError` when the section (or key) does not exist. New
sections and keys are placed first, and values, keys and comments are cut
to the fixed field lengths (`MAX_VALUE_LENGTH` and friends).

`ini.render()` returns the document text as `save()` writes it;
`ini.dump()` writes the file name, whether the document has changed, and
the text to standard output, and returns that text.

## File helpers

```python
from prxkit.files import write_file, read_file, get_file_size, touch_temp, file_exists_temp

write_file("blob.bin", b"abc")
get_file_size("blob.bin")          # 3
read_file("blob.bin", 5)           # b"abc\x00\x00", short files are zero padded
touch_temp("marker", "/tmp")       # creates /tmp/marker and returns the path
file_exists_temp("marker", "/tmp") # True
```

Failures are raised as `OSError`.

## String ids

```python
from prxkit.stringid import string_id64, string_id64_wide

sid = string_id64("plugin_load")
wide = string_id64_wide("plugin_load")
```

Hashing stops at the first NUL character.

## Instruction decoding

```python
from prxkit.hde64 import disasm, Flag

insn = disasm(bytes.fromhex("e800000000"))
assert insn.length == 5
assert Flag.RELATIVE in insn.flags
```

`disasm(code, offset)` decodes one instruction; bytes past the end of
`code` read as zero. The returned `Instruction` holds the prefixes, opcode,
ModR/M, SIB, displacement and immediate fields, with `error` and
`relative` properties.

## Pattern scanning and jumps

```python
from prxkit.memory import pattern_scan, jump32, jump64, hex_dump

data = bytes.fromhex("90 90 0f 0b 90 90")
where = pattern_scan(data, "0f ?? 90", 0)  # 2
stub = jump32(0x1000, 0x2000, 5, True)     # e8 fb 0f 00 00, a relative call
far = jump64(0x123456789)                  # jmp [rip+0] followed by the address
print(hex_dump(data, 0))
```

In patterns, `?`, `??` and a literal `ff` match any byte. `u64_scan` and
`char_scan` find a 64-bit little-endian value or a string, and
`read_lea32` resolves a rip-relative displacement.

`CodeCave(size, base)` is a block filled with `int3` bytes.
`add_prologue_hook(code, address, min_size)` copies enough whole
instructions from the start of `code` to cover `min_size` bytes, follows
them with a 64-bit jump back to `address` plus that length, and returns
the trampoline's address inside the cave. It raises `CaveFullError` when
the cave has no room left.

## What it does not do

Everything works on Python byte buffers. The package does not read or
write the memory of running processes, list processes or memory regions,
load modules, resolve symbols or send notifications, and it has no
command-line tool.