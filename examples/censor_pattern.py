#!/usr/bin/env python
"""Censor text in a PDF file. Text matching the given regular expression
is removed from the page content streams (not merely covered up) and a
coloured box is drawn where it was. Images and forms are crossed out.
Other text on the page does not move.

Usage: python censor_pattern.py input.pdf output.pdf <regex> [#color] [marked|unmarked]

"""

import logging
import sys

import pikepdf

import pdfcensor


def main(argv):
    if len(argv) < 4:
        print(
            f"Usage: python {argv[0]} input.pdf output.pdf <regex> [#color] [marked|unmarked]"
        )
        return 1

    color = argv[4] if len(argv) > 4 else "#000"
    mode = pdfcensor.Mode(argv[5]) if len(argv) > 5 else pdfcensor.Mode.ALL

    policy = pdfcensor.RegexCensorPolicy(
        [pdfcensor.Expression(argv[3], pdfcensor.parse_hex_color(color))],
        mode=mode,
        censor_unmatched=False,
    )
    options = pdfcensor.CensorOptions(keep_text_advance=True)

    with pikepdf.open(argv[1]) as pdf:
        report = pdfcensor.process(pdf, policy, options)
        pdf.save(argv[2])

    print(f"Censored {report.censored_run_count} text run(s)")
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sys.exit(main(sys.argv))
