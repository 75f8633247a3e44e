# goup

`goup` installs and manages Go toolchains in your home directory. Each
version goes into its own directory under `~/go`, for example `~/go/go1.15.2`.
The active version is the one that the `~/go/current` symlink points to.

## Installation

```
pip install goup
```

## First-time setup

```
goup init
```

`init` first prints where goup keeps its files and which profile files it is
going to change. It then asks for confirmation (`y` or `yes` to go on). After
that it:

1. writes `~/go/env`, which contains
   `export PATH="$HOME/go/current/bin:$PATH"`;
2. appends `source "$HOME/go/env"` to `~/.profile`, `~/.zprofile` and
   `~/.bash_profile`, skipping any file that already has that exact line.
   Files that are missing are created;
3. installs the latest Go release, as `goup install` does.

Options for `init`:

- `--skip-install` sets up the environment without installing Go.
- `--skip-prompt` does not ask for confirmation.

## Commands

```
goup install               # install the latest Go release
goup install 1.15.2        # install a specific version
goup install go1.15.2      # the "go" prefix is optional
goup install tip           # build Go from the development tree
goup install tip 1234      # build Go with change list 1234 applied
goup install --host HOST   # ask HOST, not go.dev, which release is the latest

goup list                  # list installed versions (alias: ls)
goup set                   # pick the default version from a numbered list
goup set 1.15.2            # make 1.15.2 the default version
goup remove 1.15.2 1.16.1  # remove installed versions (alias: rm)
goup search                # list every Go version you can install
goup search 1.15           # list only versions that match a regular expression
goup upgrade               # upgrade goup to the newest published release
goup upgrade 0.8.0         # upgrade goup to a specific release
goup version               # show the goup version
```

`-v`/`--verbose` goes before the command, as in `goup -v install`, and turns
on debug log output. Log messages are written to standard error. If a command
fails, goup prints the error and exits with status 1.

### install

`install` finds the archive for your operating system and architecture under
the download base URL. It downloads the archive, or reuses one that is
already there if its size matches the size the server reports. Then it checks
the archive against the published `.sha256` checksum and unpacks it into
`~/go/go<VERSION>`, removing the leading `go/` directory from each entry.
Last, it points `~/go/current` at the new version.

`install tip` needs `git`. It clones the Go source tree into `~/go/gotip`,
fetches the latest development branch (or the newest patch set of the given
change list, after you confirm), checks it out, cleans the tree and runs the
platform's make script. When it is done, `~/go/current` points at `~/go/gotip`.

### list

`list` prints a table of the installed versions, one per directory under `~/go`
whose name starts with `go`. The active version is marked with `*`.

### search

`search` runs `git ls-remote` against the Go source repository and prints the
release tags in version order, without the `go` prefix.

### upgrade

`upgrade` looks up goup's releases on GitHub. It takes the asset whose name is
`<os>-<arch>` (for example `linux-amd64`), downloads it, and replaces the
`goup` executable found on your `PATH` with that file.

## Environment variables

| Variable | Purpose |
| --- | --- |
| `GOUP_GO_HOST` | Host used to find the latest Go version (default `go.dev`); it is the default for `install --host`, and the flag overrides it. |
| `GOUP_GO_DOWNLOAD_BASE_URL` | Base URL that release archives are downloaded from. |
| `GOUP_GO_SOURCE_GIT_URL` | Git repository used by `search` and by `install tip`. |
| `GOUP_GO_ARCH` | Replaces the detected CPU architecture. |
| `GITHUB_TOKEN` | Optional token that `upgrade` sends with its GitHub requests. |

## Using goup from Python

The commands are built on plain functions that you can also call from Python,
for example:

- `goup.install.run_install(["1.15.2"])` installs a version and makes it the
  default;
- `goup.versions.list_installed_versions()` returns `GoVersion` records;
- `goup.versions.list_remote_versions("1.15")` returns the matching versions
  that can be installed;
- `goup.archive.unpack_archive(target_dir, archive_file)` and
  `goup.archive.verify_sha256(file, want_hex)` unpack and check release
  archives.

Failures are raised as `InstallError`, `ArchiveError`, `UpgradeError` or
`PromptAborted`.