"""tickstack – live price ticks merged onto historical crypto series.

A background tick source polls current prices on a fixed interval and
emits one event per successful poll onto a thread-safe channel.  The
dashboard session drains that channel on each Streamlit rerun, records
every event in a small fixed-capacity ring, and splices each price tick
into the bounded chart window of every watched symbol.
"""
