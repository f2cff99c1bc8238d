# GangRun Printing pricing and shipping core
