"""Browser-driven scraping harness.

This package runs scraper suites against pages rendered in a real browser:
each suite opens its URLs one at a time, waits for the page to be ready,
evaluates scraper functions inside it, optionally discovers more URLs to
crawl, and streams the items to an output writer.

See pagescrape.driver.suite_driver for the run loop and pagescrape.suite
for the per-URL scrape protocol.
"""
