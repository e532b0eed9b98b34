# blockfs

blockfs is a small block file system that runs on a disk image held in
memory. It is built in layers:

- `blockfs.layout` describes the on-disk format: `Superblock`, `DiskInode`
  and `Dirent`, each with `pack`/`unpack`, plus the sizing constants
  (`BSIZE`, `FSSIZE`, `NDIRECT`, ...) and the `KernelPanic` exception that is
  raised when an internal invariant is broken.
- `blockfs.disk` has `MemDisk`, a disk whose blocks live in a `bytearray`,
  and `Buf`, an in-memory copy of one block.
- `blockfs.bufcache.BufferCache` keeps a fixed number of blocks cached,
  reusing the least recently used free one. `BufferCache.block(dev, blockno)`
  is a context manager that reads a block and releases it afterwards.
- `blockfs.log.Log` groups block writes into transactions that are applied
  in full or not at all; `Log.transaction()` wraps one operation.
- `blockfs.fs.FileSystem` provides inodes (`ialloc`, `ilock`, `iput`, ...),
  file contents (`readi`, `writei`), directories (`dirlookup`, `dirlink`) and
  path lookup (`namei`, `nameiparent`). Device inodes are served by handlers
  installed with `register_device`.
- `blockfs.file.FileTable` holds reference-counted open files over inodes
  and pipes; `blockfs.pipe.Pipe` is a bounded byte pipe between threads.
- `blockfs.console.Console` is a line-editing console input buffer that
  echoes to a callable sink.
- `blockfs.mkfs` builds a fresh file system image.

There are also some small utilities: a fixed-size ring buffer that
overwrites its oldest element when full (`blockfs.ringbuffer.RingBuffer`),
`%d %x %p %s %c` formatting (`blockfs.fmt.sprintf`, and `ksprintf` with
lower-case hex and no `%c`), a PC scan-code decoder
(`blockfs.keyboard.Keyboard`), a 64-bit counter value split into two 32-bit
words (`blockfs.cycles.Cycles`), and a matcher that understands `^ . * $`
(`blockfs.grep.match`).

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Building an image

```
blockfs-mkfs fs.img README.md notes.txt
```

The first argument is the image to write. Every other argument is a file in
the current directory, which is copied into the root directory of the image.
A leading `_` is dropped from each name, so `_cat` is stored as `cat`. Names
must not contain `/`. The image is 1000 blocks of 512 bytes.

You can also build an image and read it from Python:

```python
from blockfs.disk import MemDisk
from blockfs.fs import FileSystem
from blockfs.mkfs import build_image

image = build_image({"hello": b"hello, world\n"})
fs = FileSystem(MemDisk(image, 1), 1)

ip = fs.namei("/hello")
fs.ilock(ip)
print(fs.readi(ip, 0, ip.size))   # b'hello, world\n'
fs.iunlock(ip)
with fs.log.transaction():
    fs.iput(ip)
```

## Searching text

```
blockfs-grep '^ab*c$' file.txt
```

With no files given, `blockfs-grep` reads standard input. It prints each
newline-terminated line that matches; a final line without a newline is not
printed.

## What it does not do

- There is no shell or command for working inside an image: files are made,
  read and linked through the `FileSystem` and `FileTable` methods only.
  There are no higher-level calls such as open-by-path, create, unlink or
  mkdir.
- Changes are made to the `MemDisk` in memory. Nothing is written back to an
  image file unless you save `MemDisk.image` yourself.
- The console does not talk to a terminal; it only buffers the characters
  you pass to `Console.interrupt` and sends output to the sink you give it.