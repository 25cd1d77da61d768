# Copyright 2019 Facebook Inc. All Rights Reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import logging
import re
import zipfile

from lxml import etree, objectify

from .codepoints import CodepointSet
from .ucd import SOFT_HYPHEN, UCDError, WidthProperties

__all__ = [
    'load_ucdxml',
    'ucdxml_get_repertoire',
    'ucdxml_get_version',
    'properties_from_ucdxml',
]

_logger = logging.getLogger(__name__)

_version = re.compile(r'(\d+\.\d+\.\d+)')


def _process_element(elt, ucd, attrs=None):
    if elt.tag.endswith('}group'):
        g = elt.attrib
        for child in elt.iterchildren():
            _process_element(child, ucd, g)
    elif elt.tag.split('}')[1] in ('char', 'noncharacter', 'reserved', 'surrogate'):
        if attrs is None:
            u = dict(elt.attrib)
        else:
            u = dict(attrs)
            u.update(elt.attrib)

        if 'cp' in u:
            cp = int(u['cp'], 16)
            del u['cp']
            ucd[cp] = u
        else:
            first_cp = int(u['first-cp'], 16)
            last_cp = int(u['last-cp'], 16)
            del u['first-cp'], u['last-cp']
            for cp in range(first_cp, last_cp + 1):
                ucd[cp] = u


def load_ucdxml(s):
    """Parse a UCD XML file: a path, a zip holding it, or a file object."""
    try:
        if hasattr(s, 'read'):
            s = s.read()
        else:
            if zipfile.is_zipfile(s):
                with zipfile.ZipFile(s) as z:
                    with z.open(z.namelist()[0]) as f:
                        s = f.read()
            else:
                with open(s, 'rb') as f:
                    s = f.read()
        return objectify.fromstring(s)
    except (OSError, zipfile.BadZipFile, etree.XMLSyntaxError) as e:
        raise UCDError('cannot load UCD XML: %s' % e) from e


def ucdxml_get_repertoire(ucdxml):
    ucd = [None] * 0x110000
    try:
        repertoire = ucdxml.repertoire
    except AttributeError:
        raise UCDError('UCD XML has no repertoire')
    for elt in repertoire.iterchildren():
        _process_element(elt, ucd)
    return ucd


def ucdxml_get_version(ucdxml):
    description = getattr(ucdxml, 'description', None)
    m = _version.search(str(description)) if description is not None else None
    if not m:
        raise UCDError('UCD XML: cannot determine Unicode version')
    return m.group(1)


def _collect(repertoire, test):
    return CodepointSet.from_codepoints(
        cp for cp, u in enumerate(repertoire) if u is not None and test(u)
    )


def properties_from_ucdxml(ucdxml):
    """Build WidthProperties from a parsed UCD XML document."""
    version = ucdxml_get_version(ucdxml)
    repertoire = ucdxml_get_repertoire(ucdxml)
    if not any(u is not None for u in repertoire):
        raise UCDError('UCD XML: empty repertoire')

    properties = WidthProperties(
        version,
        _collect(repertoire, lambda u: u.get('gc') == 'Cf')
        - CodepointSet([(SOFT_HYPHEN, SOFT_HYPHEN)]),
        _collect(
            repertoire,
            lambda u: 'Y' in (u.get('Gr_Ext'), u.get('VS'), u.get('DI')),
        ),
        _collect(repertoire, lambda u: u.get('hst') in ('V', 'T')),
        _collect(repertoire, lambda u: u.get('ea') == 'A'),
        _collect(repertoire, lambda u: u.get('ea') in ('W', 'F')),
        _collect(repertoire, lambda u: u.get('ccc', '0') != '0'),
    )
    _logger.info('loaded %r from UCD XML', properties)
    return properties
