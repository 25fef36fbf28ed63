"""I/O modules for relkin.

This package contains the input collaborators of the kinship core:
- plink: PLINK binary genotype stream (.bed/.bim/.fam) via bed-reader
- pedigree: PLINK .ped/.fam pedigree tables
- lists: id lists, id maps and genomic range files
"""

from relkin.io.lists import (
    read_id_list,
    read_id_map,
    read_range_file,
    update_ids,
)
from relkin.io.pedigree import read_pedigree
from relkin.io.plink import (
    Site,
    get_plink_metadata,
    iter_site_genotypes,
    resolve_sample_index,
    stream_genotype_chunks,
)

__all__ = [
    "Site",
    "get_plink_metadata",
    "iter_site_genotypes",
    "read_id_list",
    "read_id_map",
    "read_pedigree",
    "read_range_file",
    "resolve_sample_index",
    "stream_genotype_chunks",
    "update_ids",
]
